"""Initial cash vouchers schema

Revision ID: 20260201_0001
Revises:
Create Date: 2026-02-01

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "20260201_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)

    if not insp.has_table("cash_vouchers"):
        # No primary key: codes are not unique across rows.
        op.create_table(
            "cash_vouchers",
            sa.Column("code", sa.String(length=13), nullable=False),
            sa.Column("amount", sa.Numeric(18, 2), nullable=False),
            sa.Column("creation_date", sa.DateTime(), nullable=False),
            sa.Column("issuing_store_id", sa.Integer(), nullable=False),
            sa.Column("redemption_date", sa.DateTime(), nullable=True),
            sa.Column("expiration_date", sa.DateTime(), nullable=True),
            sa.Column("issuing_sale_id", sa.String(length=128), nullable=True),
            sa.Column(
                "redemption_sale_id", sa.String(length=128), nullable=True
            ),
        )
        op.create_index(
            "ix_cash_vouchers_code", "cash_vouchers", ["code"], unique=False
        )


def downgrade() -> None:
    op.drop_index("ix_cash_vouchers_code", table_name="cash_vouchers")
    op.drop_table("cash_vouchers")
