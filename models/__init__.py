from sqlalchemy.orm import declarative_base

Base = declarative_base()

# --------------------------------------------------
# Order ledger & vendor registry
# --------------------------------------------------
from .vendors import Vendor  # noqa: F401
from .orders import Order  # noqa: F401

# --------------------------------------------------
# Payouts
# --------------------------------------------------
from .payout_batches import PayoutBatch  # noqa: F401
from .payout_requests import PayoutRequest  # noqa: F401

# --------------------------------------------------
# Admin
# --------------------------------------------------
from .admin import Admin  # noqa: F401
