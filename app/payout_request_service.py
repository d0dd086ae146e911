# app/payout_request_service.py
"""
Vendor payout requests.

A request only records that a vendor asked to be paid; the money still moves
through a payout batch. Status changes are compare-and-set on the current
status, like the batch lifecycle.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
import logging
import uuid
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.db import atomic, expect_rows
from app.errors import IllegalStateError, NotFoundError, ValidationError
from app.payout_rules import money2
from models.payout_requests import PayoutRequest, PayoutRequestStatus
from models.vendors import Vendor
from schemas.payouts import PayoutRequestOut

logger = logging.getLogger(__name__)

# Expected settlement date shown to the vendor
EXPECTED_PAYOUT_DELAY = timedelta(days=3)

ALLOWED_TRANSITIONS = {
    PayoutRequestStatus.PENDING: {PayoutRequestStatus.APPROVED, PayoutRequestStatus.REJECTED},
    PayoutRequestStatus.APPROVED: {PayoutRequestStatus.PAID, PayoutRequestStatus.REJECTED},
}


def _parse_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}.")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero.")
    return money2(value)


def _parse_status(status) -> PayoutRequestStatus:
    try:
        return PayoutRequestStatus(str(getattr(status, "value", status)).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown payout request status: {status!r}.")


def request_vendor_payout(
    db: Session,
    vendor_id: str,
    amount,
    bank_details: Optional[dict] = None,
) -> str:
    """Record a PENDING payout request for the vendor. Returns the request id."""
    value = _parse_amount(amount)

    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise NotFoundError(f"Vendor {vendor_id} not found.")

    now = datetime.now(timezone.utc)
    request_id = uuid.uuid4().hex

    with atomic(db, "record payout request"):
        db.add(
            PayoutRequest(
                id=request_id,
                vendor_id=vendor.id,
                vendor_name=vendor.name or "Unknown Vendor",
                amount=value,
                status=PayoutRequestStatus.PENDING,
                bank_details=bank_details or {},
                requested_at=now,
                expected_date=now + EXPECTED_PAYOUT_DELAY,
            )
        )

    logger.info("PAYOUT: request recorded | id=%s | vendor=%s | amount=%s", request_id, vendor.id, value)
    return request_id


def list_payout_requests(db: Session, status=None) -> list[PayoutRequestOut]:
    """Newest first; status None or "all" returns every request."""
    q = db.query(PayoutRequest)
    if status is not None and str(status).strip().lower() != "all":
        q = q.filter(PayoutRequest.status == _parse_status(status))

    rows = q.order_by(PayoutRequest.requested_at.desc(), PayoutRequest.id.desc()).all()
    return [PayoutRequestOut.model_validate(r) for r in rows]


def update_payout_request_status(db: Session, request_id: str, status, processed_by: str) -> None:
    new_status = _parse_status(status)

    request = db.query(PayoutRequest).filter(PayoutRequest.id == request_id).first()
    if not request:
        raise NotFoundError(f"Payout request {request_id} not found.")

    current = request.status
    if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
        raise IllegalStateError(
            f"Payout request {request_id} is {current.value} and cannot become {new_status.value}."
        )

    with atomic(db, "update payout request"):
        result = db.execute(
            update(PayoutRequest)
            .where(PayoutRequest.id == request_id, PayoutRequest.status == current)
            .values(
                status=new_status,
                processed_by=processed_by,
                processed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        expect_rows(result, 1, f"payout request {request_id} changed state concurrently")

    logger.info(
        "PAYOUT: request %s %s -> %s by %s", request_id, current.value, new_status.value, processed_by
    )
