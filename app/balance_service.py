# app/balance_service.py

from __future__ import annotations

from collections import Counter
from decimal import Decimal
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.payout_rules import is_fulfilled, is_settled_order, order_earnings
from app.db import atomic, expect_rows
from models.orders import Order, PaymentStatus, PayoutStatus
from models.payout_batches import BatchStatus, PayoutBatch
from models.vendors import Vendor
from schemas.payouts import BalanceCorrection, VendorBalance

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR_NAME = "Unknown Vendor"


def _log_status_summary(db: Session) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    rows = db.query(Order.payment_status, Order.fulfillment_status).all()
    payment_counts = Counter(str(getattr(p, "value", p)) for p, _ in rows)
    fulfillment_counts = Counter((f or "unknown").lower() for _, f in rows)
    logger.debug("PAYOUT: orders in ledger=%s", len(rows))
    logger.debug("PAYOUT: payment statuses=%s", dict(payment_counts))
    logger.debug("PAYOUT: fulfillment statuses=%s", dict(fulfillment_counts))


def _last_payouts_by_vendor(db: Session, vendor_ids) -> dict[str, tuple]:
    """
    vendor_id -> (processed_at, amount) of the most recent COMPLETED batch
    that paid that vendor.
    """
    wanted = set(vendor_ids)
    found: dict[str, tuple] = {}
    if not wanted:
        return found

    batches = (
        db.query(PayoutBatch)
        .filter(PayoutBatch.status == BatchStatus.COMPLETED)
        .order_by(PayoutBatch.processed_at.desc())
        .all()
    )
    for batch in batches:
        for vp in batch.vendor_payouts or []:
            vid = vp.get("vendor_id")
            if vid in wanted and vid not in found:
                found[vid] = (batch.processed_at, Decimal(str(vp.get("amount", "0"))))
        if len(found) == len(wanted):
            break
    return found


def list_vendor_balances(db: Session) -> list[VendorBalance]:
    """
    Derive pending / lifetime earnings per vendor from the order ledger.

    - only orders with payment COMPLETED and a delivered fulfillment state count
    - records without vendor or with zero amount are logged and skipped
    - pending_balance: earnings of orders still PENDING payout
    - total_earnings / order_count: every counted order
    - total_payouts: earnings of orders already PAID

    Result: vendors with pending_balance > 0, highest first.
    Full scan, not transactional: the batch builder re-reads before writing.
    """
    _log_status_summary(db)

    orders = (
        db.query(Order)
        .filter(Order.payment_status == PaymentStatus.COMPLETED)
        .all()
    )

    names = {v.id: v.name for v in db.query(Vendor.id, Vendor.name).all()}

    balances: dict[str, VendorBalance] = {}
    processed = 0
    pending_orders = 0

    for order in orders:
        if not is_fulfilled(order.fulfillment_status):
            continue

        total = Decimal(str(order.total_amount or 0))
        if not order.vendor_id or total == 0:
            logger.warning(
                "PAYOUT: skipping order %s (vendor_id=%s, total_amount=%s)",
                order.id,
                order.vendor_id,
                order.total_amount,
            )
            continue

        earnings = order_earnings(order)

        balance = balances.get(order.vendor_id)
        if balance is None:
            balance = VendorBalance(
                vendor_id=order.vendor_id,
                vendor_name=names.get(order.vendor_id) or UNKNOWN_VENDOR_NAME,
            )
            balances[order.vendor_id] = balance

        balance.total_earnings += earnings
        balance.order_count += 1

        if order.payout_status == PayoutStatus.PENDING:
            balance.pending_balance += earnings
            pending_orders += 1
        elif order.payout_status == PayoutStatus.PAID:
            balance.total_payouts += earnings

        processed += 1

    logger.info(
        "PAYOUT: balances computed | orders=%s | pending_orders=%s | vendors=%s",
        processed,
        pending_orders,
        len(balances),
    )

    last_payouts = _last_payouts_by_vendor(db, balances.keys())
    for vendor_id, (paid_at, amount) in last_payouts.items():
        balances[vendor_id].last_payout_date = paid_at
        balances[vendor_id].last_payout_amount = amount

    result = [b for b in balances.values() if b.pending_balance > 0]
    result.sort(key=lambda b: b.pending_balance, reverse=True)
    return result


def _ledger_totals(db: Session) -> dict[str, dict[str, Decimal]]:
    totals: dict[str, dict[str, Decimal]] = {}
    orders = (
        db.query(Order)
        .filter(Order.vendor_id.isnot(None), Order.payment_status == PaymentStatus.COMPLETED)
        .all()
    )
    for order in orders:
        if not is_settled_order(order):
            continue
        t = totals.setdefault(
            order.vendor_id,
            {"pending_balance": Decimal("0.00"), "total_payouts": Decimal("0.00")},
        )
        earnings = order_earnings(order)
        if order.payout_status == PayoutStatus.PENDING:
            t["pending_balance"] += earnings
        elif order.payout_status == PayoutStatus.PAID:
            t["total_payouts"] += earnings
    return totals


def reconcile_vendor_balances(db: Session) -> list[BalanceCorrection]:
    """
    Rebuild the vendor registry balance cache from the order ledger.

    The cache is read before the ledger, and every correction is written
    only if the cached value is still the one that was read. A batch built
    or reversed in between makes the write match no row and the whole pass
    aborts with TransactionAbortError; nothing is corrected against a stale
    ledger read. Returns the corrections.
    """
    cached_by_vendor = {
        vendor.id: {
            field: Decimal(str(getattr(vendor, field) or 0))
            for field in ("pending_balance", "total_payouts")
        }
        for vendor in db.query(Vendor).order_by(Vendor.id.asc()).all()
    }
    totals = _ledger_totals(db)

    corrections: list[BalanceCorrection] = []
    for vendor_id, cached_fields in cached_by_vendor.items():
        actual = totals.get(vendor_id, {})
        for field, cached in cached_fields.items():
            expected = actual.get(field, Decimal("0.00"))
            if cached != expected:
                corrections.append(
                    BalanceCorrection(vendor_id=vendor_id, field=field, cached=cached, actual=expected)
                )

    if not corrections:
        return corrections

    with atomic(db, "reconcile vendor balances"):
        for c in corrections:
            column = getattr(Vendor, c.field)
            result = db.execute(
                update(Vendor)
                .where(Vendor.id == c.vendor_id, column == c.cached)
                .values({c.field: c.actual})
                .execution_options(synchronize_session=False)
            )
            expect_rows(result, 1, f"vendor {c.vendor_id} {c.field} changed during reconciliation")

    for c in corrections:
        logger.warning(
            "PAYOUT: balance drift corrected | vendor_id=%s | %s cached=%s actual=%s",
            c.vendor_id,
            c.field,
            c.cached,
            c.actual,
        )
    return corrections
