# schemas/payouts.py

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from models.payout_batches import BatchStatus, VendorPayoutStatus
from models.payout_requests import PayoutRequestStatus


# ------------------------
# Derived vendor balances
# ------------------------
class VendorBalance(BaseModel):
    vendor_id: str
    vendor_name: str
    pending_balance: Decimal = Decimal("0.00")
    total_earnings: Decimal = Decimal("0.00")
    total_payouts: Decimal = Decimal("0.00")
    last_payout_date: Optional[datetime] = None
    last_payout_amount: Optional[Decimal] = None
    order_count: int = 0


# ------------------------
# Batches
# ------------------------
class VendorPayoutOut(BaseModel):
    vendor_id: str
    vendor_name: str
    amount: Decimal
    transaction_count: int
    order_ids: List[str]
    utr_number: Optional[str] = None
    status: VendorPayoutStatus


class PayoutBatchOut(BaseModel):
    id: str
    batch_number: str
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    status: BatchStatus
    total_amount: Decimal
    vendor_payouts: List[VendorPayoutOut]
    created_by: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class BatchCreate(BaseModel):
    vendor_ids: List[str]
    notes: Optional[str] = None


class BatchCreated(BaseModel):
    batch_id: str


class BatchFinalize(BaseModel):
    # vendor_id -> bank transfer reference (UTR)
    utr_by_vendor: dict[str, str] = Field(default_factory=dict)


# ------------------------
# Reconciliation
# ------------------------
class BalanceCorrection(BaseModel):
    vendor_id: str
    field: str  # "pending_balance" | "total_payouts"
    cached: Decimal
    actual: Decimal


# ------------------------
# Vendor payout requests
# ------------------------
class PayoutRequestCreate(BaseModel):
    vendor_id: str
    amount: Decimal
    bank_details: Optional[dict] = None


class PayoutRequestCreated(BaseModel):
    request_id: str


class PayoutRequestStatusUpdate(BaseModel):
    status: PayoutRequestStatus


class PayoutRequestOut(BaseModel):
    id: str
    vendor_id: str
    vendor_name: str
    amount: Decimal
    status: PayoutRequestStatus
    bank_details: dict = Field(default_factory=dict)
    requested_at: Optional[datetime] = None
    expected_date: Optional[datetime] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
