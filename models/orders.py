from sqlalchemy import (
    Column,
    String,
    Numeric,
    DateTime,
    Enum,
    ForeignKey,
)
from sqlalchemy.sql import func
import enum

from models import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"        # earnings not yet claimed by any batch
    QUEUED = "queued"          # claimed by a queued batch
    PROCESSING = "processing"  # batch transfers in progress
    PAID = "paid"              # batch completed


class Order(Base):
    """
    Payout-relevant view of a marketplace order.

    The fulfillment workflow owns everything except the payout_* and
    vendor_earnings columns, which only the payout engine writes.
    """
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, index=True)

    # Can be missing on legacy / malformed records: the aggregator skips them
    vendor_id = Column(String(64), ForeignKey("vendors.id"), nullable=True, index=True)

    payment_status = Column(
        Enum(PaymentStatus),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # pending, confirmed, preparing, ready, delivered, completed, cancelled...
    fulfillment_status = Column(String(30), nullable=False, default="pending")

    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    # Recorded when the order is claimed by a batch
    vendor_earnings = Column(Numeric(12, 2), nullable=True)

    payout_status = Column(
        Enum(PayoutStatus),
        nullable=False,
        default=PayoutStatus.PENDING,
        index=True,
    )
    # Set iff payout_status != PENDING
    payout_batch_id = Column(String(32), ForeignKey("payout_batches.id"), nullable=True, index=True)
    payout_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
