"""PostgreSQL access."""

from .client import close_db_pool, get_db_pool

__all__ = [
    "close_db_pool",
    "get_db_pool",
]
