from sqlalchemy import Column, String, Numeric, DateTime, text
from sqlalchemy.sql import func

from models import Base


class Vendor(Base):
    """
    Vendor registry entry.

    pending_balance / total_payouts are a cache of what the order ledger
    says; app.balance_service.reconcile_vendor_balances() rebuilds them.
    """
    __tablename__ = "vendors"

    id = Column(String(64), primary_key=True, index=True)

    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=True)

    pending_balance = Column(Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    total_payouts = Column(Numeric(12, 2), nullable=False, default=0, server_default=text("0"))

    last_payout_date = Column(DateTime(timezone=True), nullable=True)
    last_payout_amount = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
