# models/payout_batches.py

from sqlalchemy import Column, String, Numeric, DateTime, Enum, JSON
from sqlalchemy.sql import func
import enum

from models import Base


class BatchStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VendorPayoutStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


class PayoutBatch(Base):
    """
    A grouped settlement of one or more vendors' pending earnings.

    The vendor payouts are embedded (JSON list) so the whole manifest is
    read in one go. Each entry:
        {
            "vendor_id": str,
            "vendor_name": str,
            "amount": "3325.00",          # Decimal as string
            "transaction_count": int,
            "order_ids": [str, ...],
            "utr_number": str | None,     # bank transfer reference
            "status": "queued" | "processing" | "paid" | "failed",
        }
    total_amount is always the sum of the entries' amounts.
    """
    __tablename__ = "payout_batches"

    id = Column(String(32), primary_key=True, index=True)

    # e.g. BATCH-2026-1019-143015-482913
    batch_number = Column(String(40), nullable=False, unique=True)

    status = Column(Enum(BatchStatus), nullable=False, default=BatchStatus.QUEUED, index=True)

    total_amount = Column(Numeric(12, 2), nullable=False)

    vendor_payouts = Column(JSON, nullable=False, default=list)

    created_by = Column(String(255), nullable=False)
    notes = Column(String(1000), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
