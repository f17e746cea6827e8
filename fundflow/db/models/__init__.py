"""Database models."""

from fundflow.db.models.base import Base
from fundflow.db.models.orders import (
    Order,
    Subscription,
)

__all__ = [
    "Base",
    "Order",
    "Subscription",
]
