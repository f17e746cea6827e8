"""Create orders and subscriptions tables.

Revision ID: 001_create_orders
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_create_orders"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # Subscriptions table
    # ==========================================================================
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # ==========================================================================
    # Orders table
    # ==========================================================================
    op.create_table(
        "orders",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="NEW"),
        sa.Column("collective_id", sa.Text, nullable=False),
        sa.Column("from_collective_id", sa.Text, nullable=False),
        sa.Column("created_by_user_id", sa.Text, nullable=True),
        sa.Column("tier_id", sa.Text, nullable=True),
        sa.Column("payment_method_id", sa.Text, nullable=True),
        sa.Column(
            "subscription_id",
            sa.Text,
            sa.ForeignKey("subscriptions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("total_amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("data", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_collective_id", "orders", ["collective_id"])

    # The expired-lock sweep only looks at locked rows.
    op.execute(
        """
        CREATE INDEX idx_orders_data_locked_at
        ON orders ((data->>'lockedAt'))
        WHERE data ? 'lockedAt'
        """
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_orders_data_locked_at")
    op.drop_index("ix_orders_collective_id", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_table("orders")
    op.drop_table("subscriptions")
