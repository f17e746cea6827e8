"""
Orders

Order locking and order-level maintenance helpers.
"""

from fundflow.orders.locks import ClearedLocks, OrderLockManager
from fundflow.orders.store import OrderLockStore, PostgresOrderLockStore
from fundflow.orders.subscriptions import stop_active_subscriptions
from fundflow.orders.types import OrderData, OrderRecord, OrderStatus

__all__ = [
    # Locks
    "ClearedLocks",
    "OrderLockManager",
    "OrderLockStore",
    "PostgresOrderLockStore",
    # Subscriptions
    "stop_active_subscriptions",
    # Types
    "OrderData",
    "OrderRecord",
    "OrderStatus",
]
