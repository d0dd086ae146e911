# app/payout_service.py
"""
Payout batches: build, advance, finalize, reverse.

Every mutation below is a single transaction (app.db.atomic). Writes that
depend on an earlier read are conditional UPDATE/DELETE statements keyed on
the expected prior state; if one of them matches fewer rows than expected
the whole transaction is rolled back with TransactionAbortError, so two
admins working on overlapping vendors can never claim the same order twice.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from app.db import atomic, expect_rows
from app.email_service import send_payout_completed_email
from app.errors import IllegalStateError, NotFoundError, ValidationError
from app.payout_rules import calc_vendor_earnings, eligible_order_criteria
from models.orders import Order, PayoutStatus
from models.payout_batches import BatchStatus, PayoutBatch, VendorPayoutStatus
from models.vendors import Vendor
from schemas.payouts import PayoutBatchOut, VendorPayoutOut

logger = logging.getLogger(__name__)

# Batch status -> payout status its orders are in.
# A COMPLETED batch has a recorded bank transfer and cannot be reversed.
REVERSIBLE_BATCH_STATUSES = {
    BatchStatus.QUEUED: PayoutStatus.QUEUED,
    BatchStatus.PROCESSING: PayoutStatus.PROCESSING,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_batch_number(now: datetime) -> str:
    # BATCH-<year>-<MMDD>-<hhmmss>-<microseconds>: sorts chronologically
    return f"BATCH-{now:%Y}-{now:%m%d}-{now:%H%M%S}-{now.microsecond:06d}"


def _get_batch(db: Session, batch_id: str) -> PayoutBatch:
    batch = db.query(PayoutBatch).filter(PayoutBatch.id == batch_id).first()
    if not batch:
        raise NotFoundError(f"Payout batch {batch_id} not found.")
    return batch


def _batch_order_ids(batch: PayoutBatch) -> list[str]:
    return [oid for vp in batch.vendor_payouts or [] for oid in vp.get("order_ids", [])]


def _move_orders(
    db: Session,
    batch_id: str,
    order_ids: list[str],
    from_status: PayoutStatus,
    to_status: PayoutStatus,
    **extra,
) -> None:
    """Conditional bulk transition of the batch's orders."""
    if not order_ids:
        return
    result = db.execute(
        update(Order)
        .where(
            Order.id.in_(order_ids),
            Order.payout_batch_id == batch_id,
            Order.payout_status == from_status,
        )
        .values(payout_status=to_status, **extra)
        .execution_options(synchronize_session=False)
    )
    expect_rows(
        result,
        len(order_ids),
        f"orders of batch {batch_id} are no longer {from_status.value}",
    )


def _eligible_orders(db: Session, vendor_id: str) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.vendor_id == vendor_id, *eligible_order_criteria())
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )


# ---------------------------------------------------------
# BATCH BUILDER
# ---------------------------------------------------------
def create_batch(
    db: Session,
    vendor_ids: Iterable[str],
    created_by: str,
    notes: Optional[str] = None,
) -> str:
    """
    Group the pending earnings of the selected vendors into a new QUEUED batch.

    Each vendor's eligible orders are re-read here (the balance listing the
    admin looked at may be stale). In one transaction:
      - the batch row is inserted
      - every contributing order goes PENDING -> QUEUED with payout_batch_id,
        provided it is still eligible at write time
      - each vendor's cached pending_balance is decreased by its payout

    Vendors without eligible orders are left out. Returns the new batch id.
    """
    selected = list(dict.fromkeys(v.strip() for v in (vendor_ids or []) if v and v.strip()))
    if not selected:
        raise ValidationError("No vendors selected.")

    created_by = (created_by or "").strip()
    if not created_by:
        raise ValidationError("created_by is required.")

    vendors = {v.id: v for v in db.query(Vendor).filter(Vendor.id.in_(selected)).all()}
    missing = [vid for vid in selected if vid not in vendors]
    if missing:
        raise NotFoundError(f"Vendor not found: {', '.join(missing)}")

    vendor_payouts: list[dict] = []
    claims: list[tuple[str, Decimal]] = []
    total_amount = Decimal("0.00")

    for vendor_id in selected:
        order_ids: list[str] = []
        vendor_amount = Decimal("0.00")

        for order in _eligible_orders(db, vendor_id):
            earnings = calc_vendor_earnings(order.total_amount)
            if earnings <= 0:
                continue
            order_ids.append(order.id)
            vendor_amount += earnings
            claims.append((order.id, earnings))

        if not order_ids:
            logger.info("PAYOUT: vendor %s has no eligible orders, left out of batch", vendor_id)
            continue

        vendor_payouts.append(
            {
                "vendor_id": vendor_id,
                "vendor_name": vendors[vendor_id].name,
                "amount": str(vendor_amount),
                "transaction_count": len(order_ids),
                "order_ids": order_ids,
                "utr_number": None,
                "status": VendorPayoutStatus.QUEUED.value,
            }
        )
        total_amount += vendor_amount

    if not vendor_payouts:
        raise ValidationError("Selected vendors have no pending balance.")

    now = _utcnow()
    batch_id = uuid.uuid4().hex
    batch = PayoutBatch(
        id=batch_id,
        batch_number=new_batch_number(now),
        status=BatchStatus.QUEUED,
        total_amount=total_amount,
        vendor_payouts=vendor_payouts,
        created_by=created_by,
        notes=(notes or "").strip() or None,
        created_at=now,
    )

    with atomic(db, "create payout batch"):
        db.add(batch)
        db.flush()

        for order_id, earnings in claims:
            result = db.execute(
                update(Order)
                .where(Order.id == order_id, *eligible_order_criteria())
                .values(
                    payout_status=PayoutStatus.QUEUED,
                    payout_batch_id=batch_id,
                    vendor_earnings=earnings,
                )
                .execution_options(synchronize_session=False)
            )
            expect_rows(result, 1, f"order {order_id} is no longer eligible for payout")

        for vp in vendor_payouts:
            result = db.execute(
                update(Vendor)
                .where(Vendor.id == vp["vendor_id"])
                .values(pending_balance=Vendor.pending_balance - Decimal(vp["amount"]))
                .execution_options(synchronize_session=False)
            )
            expect_rows(result, 1, f"vendor {vp['vendor_id']} disappeared")

    logger.info(
        "PAYOUT: batch created | id=%s | number=%s | vendors=%s | orders=%s | total=%s | by=%s",
        batch_id,
        batch.batch_number,
        len(vendor_payouts),
        len(claims),
        total_amount,
        created_by,
    )
    return batch_id


# ---------------------------------------------------------
# LIFECYCLE: QUEUED -> PROCESSING -> COMPLETED
# ---------------------------------------------------------
def advance_batch(db: Session, batch_id: str) -> None:
    """Start processing a QUEUED batch: batch, vendor payouts and orders go PROCESSING."""
    batch = _get_batch(db, batch_id)
    if batch.status != BatchStatus.QUEUED:
        raise IllegalStateError(
            f"Batch {batch.batch_number} is {batch.status.value}, only queued batches can be processed."
        )

    order_ids = _batch_order_ids(batch)
    payouts = [
        {**vp, "status": VendorPayoutStatus.PROCESSING.value}
        for vp in batch.vendor_payouts
    ]

    with atomic(db, "advance payout batch"):
        result = db.execute(
            update(PayoutBatch)
            .where(PayoutBatch.id == batch_id, PayoutBatch.status == BatchStatus.QUEUED)
            .values(status=BatchStatus.PROCESSING, vendor_payouts=payouts)
            .execution_options(synchronize_session=False)
        )
        expect_rows(result, 1, f"batch {batch_id} changed state concurrently")

        _move_orders(db, batch_id, order_ids, PayoutStatus.QUEUED, PayoutStatus.PROCESSING)

    logger.info("PAYOUT: batch processing | id=%s | orders=%s", batch_id, len(order_ids))


def finalize_batch(db: Session, batch_id: str, utr_by_vendor: Optional[dict[str, str]] = None) -> None:
    """
    Complete a PROCESSING batch once the bank transfers have been made.

    utr_by_vendor maps vendor_id -> transfer reference; a vendor without a
    reference keeps utr_number unset. In one transaction the batch becomes
    COMPLETED, its orders PAID (with payout_date) and every vendor's
    total_payouts / last_payout_* are updated. Vendors are e-mailed after
    the commit; a failed e-mail never undoes the payout.
    """
    utr_by_vendor = utr_by_vendor or {}

    batch = _get_batch(db, batch_id)
    if batch.status != BatchStatus.PROCESSING:
        raise IllegalStateError(
            f"Batch {batch.batch_number} is {batch.status.value}, only processing batches can be completed."
        )

    batch_vendor_ids = {vp["vendor_id"] for vp in batch.vendor_payouts}
    unknown = sorted(set(utr_by_vendor) - batch_vendor_ids)
    if unknown:
        raise ValidationError(f"Vendors not in batch {batch.batch_number}: {', '.join(unknown)}")

    now = _utcnow()
    order_ids = _batch_order_ids(batch)
    payouts = []
    for vp in batch.vendor_payouts:
        utr = (utr_by_vendor.get(vp["vendor_id"]) or "").strip() or None
        payouts.append({**vp, "utr_number": utr, "status": VendorPayoutStatus.PAID.value})

    with atomic(db, "finalize payout batch"):
        result = db.execute(
            update(PayoutBatch)
            .where(PayoutBatch.id == batch_id, PayoutBatch.status == BatchStatus.PROCESSING)
            .values(status=BatchStatus.COMPLETED, processed_at=now, vendor_payouts=payouts)
            .execution_options(synchronize_session=False)
        )
        expect_rows(result, 1, f"batch {batch_id} changed state concurrently")

        _move_orders(
            db,
            batch_id,
            order_ids,
            PayoutStatus.PROCESSING,
            PayoutStatus.PAID,
            payout_date=now,
        )

        for vp in payouts:
            amount = Decimal(vp["amount"])
            result = db.execute(
                update(Vendor)
                .where(Vendor.id == vp["vendor_id"])
                .values(
                    total_payouts=Vendor.total_payouts + amount,
                    last_payout_date=now,
                    last_payout_amount=amount,
                )
                .execution_options(synchronize_session=False)
            )
            expect_rows(result, 1, f"vendor {vp['vendor_id']} disappeared")

    logger.info("PAYOUT: batch completed | id=%s | orders=%s", batch_id, len(order_ids))

    _notify_vendors(db, batch_number=batch.batch_number, payouts=payouts)


def _safe_send_payout_email(*, to_email: str, vendor_name: str, amount, batch_number: str, utr_number) -> None:
    try:
        sent = send_payout_completed_email(
            to_email=to_email,
            vendor_name=vendor_name,
            amount=amount,
            batch_number=batch_number,
            utr_number=utr_number,
        )
        if sent:
            logger.info("EMAIL: payout completed sent | to=%s | batch=%s", to_email, batch_number)
    except Exception:
        logger.exception("EMAIL: payout completed FAILED | to=%s | batch=%s", to_email, batch_number)


def _notify_vendors(db: Session, *, batch_number: str, payouts: list[dict]) -> None:
    try:
        ids = [vp["vendor_id"] for vp in payouts]
        emails = {
            v.id: v.email
            for v in db.query(Vendor.id, Vendor.email).filter(Vendor.id.in_(ids)).all()
        }
    except Exception:
        logger.exception("EMAIL: could not load vendor e-mails | batch=%s", batch_number)
        return

    for vp in payouts:
        to_email = emails.get(vp["vendor_id"])
        if not to_email:
            continue
        _safe_send_payout_email(
            to_email=to_email,
            vendor_name=vp["vendor_name"],
            amount=vp["amount"],
            batch_number=batch_number,
            utr_number=vp.get("utr_number"),
        )


# ---------------------------------------------------------
# REVERSAL (compensates create_batch)
# ---------------------------------------------------------
def delete_batch(db: Session, batch_id: str) -> None:
    """
    Undo create_batch: orders back to PENDING without batch reference,
    vendors' pending_balance restored, batch row deleted. One transaction.

    Only QUEUED / PROCESSING batches; a COMPLETED batch has been paid.
    """
    batch = _get_batch(db, batch_id)
    orders_status = REVERSIBLE_BATCH_STATUSES.get(batch.status)
    if orders_status is None:
        raise IllegalStateError(
            f"Batch {batch.batch_number} is {batch.status.value} and can no longer be reversed."
        )

    batch_status = batch.status
    order_ids = _batch_order_ids(batch)
    payouts = list(batch.vendor_payouts or [])

    with atomic(db, "delete payout batch"):
        _move_orders(
            db,
            batch_id,
            order_ids,
            orders_status,
            PayoutStatus.PENDING,
            payout_batch_id=None,
        )

        for vp in payouts:
            result = db.execute(
                update(Vendor)
                .where(Vendor.id == vp["vendor_id"])
                .values(pending_balance=Vendor.pending_balance + Decimal(vp["amount"]))
                .execution_options(synchronize_session=False)
            )
            expect_rows(result, 1, f"vendor {vp['vendor_id']} disappeared")

        result = db.execute(
            delete(PayoutBatch)
            .where(PayoutBatch.id == batch_id, PayoutBatch.status == batch_status)
            .execution_options(synchronize_session=False)
        )
        expect_rows(result, 1, f"batch {batch_id} changed state concurrently")

    logger.info("PAYOUT: batch %s deleted, %s orders reset to pending", batch_id, len(order_ids))


# ---------------------------------------------------------
# READS
# ---------------------------------------------------------
def _batches_newest_first(db: Session) -> list[PayoutBatch]:
    return (
        db.query(PayoutBatch)
        .order_by(PayoutBatch.created_at.desc(), PayoutBatch.batch_number.desc())
        .all()
    )


def list_batches(db: Session) -> list[PayoutBatchOut]:
    return [PayoutBatchOut.model_validate(b) for b in _batches_newest_first(db)]


def get_batch(db: Session, batch_id: str) -> PayoutBatchOut:
    return PayoutBatchOut.model_validate(_get_batch(db, batch_id))


def get_vendor_payout_history(db: Session, vendor_id: str) -> list[PayoutBatchOut]:
    """
    Batches that include the vendor, newest first.

    Each one is narrowed to the vendor's own payout entry, and total_amount
    is that entry's amount.
    """
    if not db.query(Vendor.id).filter(Vendor.id == vendor_id).first():
        raise NotFoundError(f"Vendor {vendor_id} not found.")

    history = []
    for batch in _batches_newest_first(db):
        vp = next(
            (p for p in batch.vendor_payouts or [] if p.get("vendor_id") == vendor_id),
            None,
        )
        if vp is None:
            continue
        history.append(
            PayoutBatchOut(
                id=batch.id,
                batch_number=batch.batch_number,
                created_at=batch.created_at,
                processed_at=batch.processed_at,
                status=batch.status,
                total_amount=Decimal(str(vp["amount"])),
                vendor_payouts=[VendorPayoutOut(**vp)],
                created_by=batch.created_by,
                notes=batch.notes,
            )
        )
    return history
