"""Add in_use to cash_vouchers

Revision ID: 20260201_0002
Revises: 20260201_0001
Create Date: 2026-02-01

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20260201_0002"
down_revision = "20260201_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("cash_vouchers") as batch_op:
        batch_op.add_column(
            sa.Column(
                "in_use", sa.Boolean(), nullable=False, server_default=sa.false()
            )
        )


def downgrade() -> None:
    with op.batch_alter_table("cash_vouchers") as batch_op:
        batch_op.drop_column("in_use")
