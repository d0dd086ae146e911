import itertools
import os
from decimal import Decimal

# Settings are read at import time: point the app at SQLite before importing it
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["EMAIL_ENABLED"] = "0"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.passwords import hash_password  # noqa: E402
from models import Base  # noqa: E402
from models.admin import Admin  # noqa: E402
from models.orders import Order, PaymentStatus, PayoutStatus  # noqa: E402
from models.vendors import Vendor  # noqa: E402
from routers.auth_admin import get_current_admin  # noqa: E402


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Return a session bound to the test database."""
    session = sessionmaker(bind=engine, autoflush=True, autocommit=False)()
    yield session
    session.close()


@pytest.fixture
def make_vendor(db):
    """Factory for vendor registry entries."""
    def _make(vendor_id, name=None, email=None, pending_balance="0.00", total_payouts="0.00"):
        vendor = Vendor(
            id=vendor_id,
            name=name or f"Vendor {vendor_id}",
            email=email,
            pending_balance=Decimal(pending_balance),
            total_payouts=Decimal(total_payouts),
        )
        db.add(vendor)
        db.commit()
        return vendor
    return _make


@pytest.fixture
def make_order(db):
    """Factory for ledger orders. Defaults to an order eligible for payout."""
    seq = itertools.count(1)

    def _make(
        vendor_id,
        total_amount,
        payment_status=PaymentStatus.COMPLETED,
        fulfillment_status="delivered",
        payout_status=PayoutStatus.PENDING,
        payout_batch_id=None,
        order_id=None,
        vendor_earnings=None,
    ):
        order = Order(
            id=order_id or f"ord-{next(seq):04d}",
            vendor_id=vendor_id,
            payment_status=payment_status,
            fulfillment_status=fulfillment_status,
            total_amount=Decimal(str(total_amount)),
            payout_status=payout_status,
            payout_batch_id=payout_batch_id,
            vendor_earnings=None if vendor_earnings is None else Decimal(str(vendor_earnings)),
        )
        db.add(order)
        db.commit()
        return order
    return _make


@pytest.fixture
def vendor_v(make_vendor, make_order):
    """
    Vendor V with three eligible orders: 1000, 2000, 500.
    At 5% commission the pending balance is 950 + 1900 + 475 = 3325.
    """
    vendor = make_vendor("V", name="Spice Route", email="spice@example.com", pending_balance="3325.00")
    make_order("V", 1000, order_id="V-1")
    make_order("V", 2000, order_id="V-2", fulfillment_status="completed")
    make_order("V", 500, order_id="V-3", fulfillment_status="Ready")
    return vendor


@pytest.fixture
def admin_user(db):
    """Create and return an active admin."""
    admin = Admin(
        email="admin@example.com",
        hashed_password=hash_password("TestPass123!"),
        is_active=True,
        is_superadmin=False,
    )
    db.add(admin)
    db.commit()
    return admin


@pytest.fixture
def anon_client(db):
    """API client on the test database, no authentication."""
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(anon_client, admin_user):
    """API client authenticated as admin_user."""
    app.dependency_overrides[get_current_admin] = lambda: admin_user
    return anon_client
