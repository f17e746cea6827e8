"""
Expired Order Lock Sweep Job.

Clears order locks left behind by crashed or stuck workers. Without this an
order whose worker died mid-processing would stay locked until the expiry
window passes on every read, and the deadlock would go unrecorded.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from fundflow.config import get_settings
from fundflow.kernel.time import utc_now
from fundflow.orders.locks import OrderLockManager

logger = structlog.get_logger()


@dataclass
class ExpiredLockSweepStats:
    cleared: int = 0
    order_ids: list[str] | None = None
    started_at: str | None = None
    completed_at: str | None = None


class ClearExpiredOrderLocksJob:
    """Periodic sweep over expired order locks."""

    def __init__(self, manager: OrderLockManager | None = None) -> None:
        self.settings = get_settings()
        self.manager = manager or OrderLockManager()
        self._shutdown = asyncio.Event()

    async def run(self, limit: int | None = None) -> dict[str, Any]:
        stats = ExpiredLockSweepStats(started_at=utc_now().isoformat())

        result = await self.manager.clear_expired_locks(limit=limit)
        stats.cleared = result.count
        stats.order_ids = [order.id for order in result.orders]

        stats.completed_at = utc_now().isoformat()
        if stats.cleared:
            logger.warning(
                "Cleared expired order locks",
                count=stats.cleared,
                order_ids=stats.order_ids,
            )
        return stats.__dict__

    async def run_forever(self) -> None:
        interval = max(1, int(self.settings.order_lock_sweep_interval_seconds))
        logger.info("Expired order lock sweep starting", interval_seconds=interval)

        while not self._shutdown.is_set():
            try:
                await self.run()
            except Exception as exc:
                # Keep sweeping; a transient database error must not stop the loop.
                logger.warning("Failed to clear expired order locks", error=str(exc))

            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Expired order lock sweep stopped")

    async def shutdown(self) -> None:
        self._shutdown.set()

