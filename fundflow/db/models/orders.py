"""
Order Database Models

Orders carry a JSONB `data` bag. Lock state (`lockedAt`, `deadlocks`) lives
in that bag next to business keys, so it survives schema changes made by
other services that share the table.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from fundflow.db.models.base import Base
from fundflow.kernel.ids import new_prefixed_id


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Text, primary_key=True, default=lambda: new_prefixed_id("sub"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Text, primary_key=True, default=lambda: new_prefixed_id("ord"))
    status = Column(String(32), nullable=False, default="NEW", index=True)

    collective_id = Column(Text, nullable=False, index=True)
    from_collective_id = Column(Text, nullable=False)
    created_by_user_id = Column(Text, nullable=True)
    tier_id = Column(Text, nullable=True)
    payment_method_id = Column(Text, nullable=True)
    subscription_id = Column(
        Text,
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
    )

    total_amount = Column(Integer, nullable=False)  # cents
    currency = Column(String(3), nullable=False)

    data = Column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    subscription = relationship("Subscription")

    __table_args__ = (
        Index(
            "idx_orders_data_locked_at",
            text("(data->>'lockedAt')"),
            postgresql_where=text("data ? 'lockedAt'"),
        ),
    )
