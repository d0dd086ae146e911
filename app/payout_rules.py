# app/payout_rules.py
"""
Shared settlement rules.

Commission rate and payout eligibility live here and only here: the
aggregator, the batch builder and the reconciliation pass all import them,
so vendor earnings can never be computed two different ways.
"""

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from app.config import settings
from models.orders import Order, PaymentStatus, PayoutStatus

COMMISSION_RATE: Decimal = Decimal(str(settings.commission_rate))

ELIGIBLE_FULFILLMENT_STATUSES: frozenset[str] = frozenset(
    s.strip().lower() for s in settings.payout_eligible_fulfillment_statuses if s.strip()
)


def money2(v: Decimal) -> Decimal:
    return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def calc_vendor_earnings(total_amount) -> Decimal:
    """total_amount minus the platform commission, rounded to the cent."""
    total = Decimal(str(total_amount or 0))
    commission = total * COMMISSION_RATE
    return money2(total - commission)


def normalize_fulfillment_status(fulfillment_status: str | None) -> str:
    # Same normalization as the SQL side: trim spaces, then lowercase
    return (fulfillment_status or "").strip(" ").lower()


def is_fulfilled(fulfillment_status: str | None) -> bool:
    return normalize_fulfillment_status(fulfillment_status) in ELIGIBLE_FULFILLMENT_STATUSES


def order_earnings(order: Order) -> Decimal:
    """
    Vendor earnings of an order.

    Once claimed by a batch the order carries the amount recorded at claim
    time, which later commission changes must not alter. Pending orders (and
    legacy rows without a recorded amount) use the current rate.
    """
    if order.payout_status != PayoutStatus.PENDING and order.vendor_earnings is not None:
        return money2(Decimal(str(order.vendor_earnings)))
    return calc_vendor_earnings(order.total_amount)


def is_settled_order(order: Order) -> bool:
    """Payment completed and fulfillment in a delivered state (payout status ignored)."""
    return order.payment_status == PaymentStatus.COMPLETED and is_fulfilled(order.fulfillment_status)


def is_eligible_for_payout(order: Order) -> bool:
    return is_settled_order(order) and order.payout_status == PayoutStatus.PENDING


def eligible_order_criteria():
    """
    SQL version of is_eligible_for_payout().

    Used both to select orders and as the WHERE clause of the conditional
    write that claims them, so eligibility is re-checked at commit time.
    """
    return (
        Order.payment_status == PaymentStatus.COMPLETED,
        func.lower(func.trim(Order.fulfillment_status)).in_(sorted(ELIGIBLE_FULFILLMENT_STATUSES)),
        Order.payout_status == PayoutStatus.PENDING,
    )
