# models/admin.py

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from . import Base


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)

    # Login e-mail, also recorded as created_by on payout batches
    email = Column(String, unique=True, index=True, nullable=False)

    # bcrypt hash, never the clear password
    hashed_password = Column(String, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    is_superadmin = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
