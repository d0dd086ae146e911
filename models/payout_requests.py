# models/payout_requests.py

from sqlalchemy import Column, String, Numeric, DateTime, Enum, JSON, ForeignKey
from sqlalchemy.sql import func
import enum

from models import Base


class PayoutRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class PayoutRequest(Base):
    """
    A vendor asking to be paid out ahead of the next batch run.

    Only a record for the admin: it never touches orders or balances. The
    admin settles it through a normal batch and then closes it here.
    """
    __tablename__ = "payout_requests"

    id = Column(String(32), primary_key=True, index=True)

    vendor_id = Column(String(64), ForeignKey("vendors.id"), nullable=False, index=True)
    # Snapshot at request time
    vendor_name = Column(String(150), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)

    status = Column(
        Enum(PayoutRequestStatus),
        nullable=False,
        default=PayoutRequestStatus.PENDING,
        index=True,
    )

    # Free-form bank details as supplied with the request
    bank_details = Column(JSON, nullable=False, default=dict)

    requested_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expected_date = Column(DateTime(timezone=True), nullable=True)

    processed_by = Column(String(255), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
