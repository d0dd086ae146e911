"""add payout requests

Revision ID: b7d2f4a91c08
Revises: a1c3e5f70b21
Create Date: 2026-10-19 16:40:07.102931
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b7d2f4a91c08"
down_revision: Union[str, Sequence[str], None] = "a1c3e5f70b21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

request_status = sa.Enum("PENDING", "APPROVED", "REJECTED", "PAID", name="payoutrequeststatus")


def upgrade() -> None:
    op.create_table(
        "payout_requests",
        sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("vendor_id", sa.String(length=64), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("vendor_name", sa.String(length=150), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", request_status, nullable=False),
        sa.Column("bank_details", sa.JSON(), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expected_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(length=255), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_payout_requests_id"), "payout_requests", ["id"], unique=False)
    op.create_index(op.f("ix_payout_requests_vendor_id"), "payout_requests", ["vendor_id"], unique=False)
    op.create_index(op.f("ix_payout_requests_status"), "payout_requests", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_payout_requests_status"), table_name="payout_requests")
    op.drop_index(op.f("ix_payout_requests_vendor_id"), table_name="payout_requests")
    op.drop_index(op.f("ix_payout_requests_id"), table_name="payout_requests")
    op.drop_table("payout_requests")

    request_status.drop(op.get_bind(), checkfirst=True)
