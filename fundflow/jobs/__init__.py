"""
Background Jobs

Scheduled maintenance for orders.
"""

from fundflow.jobs.expired_locks import (
    ClearExpiredOrderLocksJob,
    ExpiredLockSweepStats,
)

__all__ = [
    "ClearExpiredOrderLocksJob",
    "ExpiredLockSweepStats",
]
