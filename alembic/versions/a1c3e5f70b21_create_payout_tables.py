"""create vendors, orders, payout batches, admins

Revision ID: a1c3e5f70b21
Revises:
Create Date: 2026-10-19 10:12:31.418204
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c3e5f70b21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

payment_status = sa.Enum("PENDING", "COMPLETED", "FAILED", "REFUNDED", name="paymentstatus")
payout_status = sa.Enum("PENDING", "QUEUED", "PROCESSING", "PAID", name="payoutstatus")
batch_status = sa.Enum("QUEUED", "PROCESSING", "COMPLETED", "FAILED", name="batchstatus")


def upgrade() -> None:
    op.create_table(
        "vendors",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("pending_balance", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("total_payouts", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("last_payout_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payout_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index(op.f("ix_vendors_id"), "vendors", ["id"], unique=False)

    op.create_table(
        "payout_batches",
        sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("batch_number", sa.String(length=40), nullable=False, unique=True),
        sa.Column("status", batch_status, nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("vendor_payouts", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_payout_batches_id"), "payout_batches", ["id"], unique=False)
    op.create_index(op.f("ix_payout_batches_status"), "payout_batches", ["status"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("vendor_id", sa.String(length=64), sa.ForeignKey("vendors.id"), nullable=True),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("fulfillment_status", sa.String(length=30), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("vendor_earnings", sa.Numeric(12, 2), nullable=True),
        sa.Column("payout_status", payout_status, nullable=False),
        sa.Column(
            "payout_batch_id",
            sa.String(length=32),
            sa.ForeignKey("payout_batches.id"),
            nullable=True,
        ),
        sa.Column("payout_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index(op.f("ix_orders_id"), "orders", ["id"], unique=False)
    op.create_index(op.f("ix_orders_vendor_id"), "orders", ["vendor_id"], unique=False)
    op.create_index(op.f("ix_orders_payout_status"), "orders", ["payout_status"], unique=False)
    op.create_index(op.f("ix_orders_payout_batch_id"), "orders", ["payout_batch_id"], unique=False)

    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_superadmin", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_admins_id"), "admins", ["id"], unique=False)
    op.create_index(op.f("ix_admins_email"), "admins", ["email"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_admins_email"), table_name="admins")
    op.drop_index(op.f("ix_admins_id"), table_name="admins")
    op.drop_table("admins")

    op.drop_index(op.f("ix_orders_payout_batch_id"), table_name="orders")
    op.drop_index(op.f("ix_orders_payout_status"), table_name="orders")
    op.drop_index(op.f("ix_orders_vendor_id"), table_name="orders")
    op.drop_index(op.f("ix_orders_id"), table_name="orders")
    op.drop_table("orders")

    op.drop_index(op.f("ix_payout_batches_status"), table_name="payout_batches")
    op.drop_index(op.f("ix_payout_batches_id"), table_name="payout_batches")
    op.drop_table("payout_batches")

    op.drop_index(op.f("ix_vendors_id"), table_name="vendors")
    op.drop_table("vendors")

    batch_status.drop(op.get_bind(), checkfirst=True)
    payout_status.drop(op.get_bind(), checkfirst=True)
    payment_status.drop(op.get_bind(), checkfirst=True)
