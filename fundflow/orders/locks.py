"""
Order locks.

An order is locked by writing `lockedAt` into its `data` bag with a
conditional UPDATE, so exclusivity holds across processes and workers.
A lock older than the expiry window no longer counts; the periodic sweep
(`clear_expired_locks`) removes such locks and records them under
`data.deadlocks` for later inspection.

Usage:
    manager = OrderLockManager()
    await manager.acquire_and_run(order_id, charge_order, retries=10, retry_delay_ms=250)
"""

from __future__ import annotations

import asyncio
import inspect
import time
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, NamedTuple, Union

import structlog

from fundflow.config import get_settings
from fundflow.kernel.errors import LockBusyError, NotFoundError
from fundflow.kernel.time import utc_now
from fundflow.orders.metrics import get_lock_metrics
from fundflow.orders.store import OrderLockStore, PostgresOrderLockStore
from fundflow.orders.types import OrderData, OrderRecord, lock_is_live

logger = structlog.get_logger()

LockAction = Callable[[], Union[Awaitable[Any], Any]]


class ClearedLocks(NamedTuple):
    """Result of a sweep. Unpacks as `(orders, count)`."""

    orders: list[OrderRecord]
    count: int


class OrderLockManager:
    def __init__(
        self,
        store: OrderLockStore | None = None,
        *,
        expiry_seconds: int | None = None,
        max_retries: int | None = None,
        sweep_batch_size: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        settings = get_settings()
        self.store = store or PostgresOrderLockStore()
        self.expiry_seconds = int(expiry_seconds or settings.order_lock_expiry_seconds)
        self.max_retries = int(settings.order_lock_max_retries if max_retries is None else max_retries)
        self.sweep_batch_size = int(sweep_batch_size or settings.order_lock_sweep_batch_size)
        self._clock = clock
        self._metrics = get_lock_metrics()

    @property
    def expiry(self) -> timedelta:
        return timedelta(seconds=self.expiry_seconds)

    def is_locked(self, order: OrderRecord | OrderData, *, now: datetime | None = None) -> bool:
        """True if the order carries a `lockedAt` younger than the expiry window."""
        data = order.data if isinstance(order, OrderRecord) else order
        return lock_is_live(data.locked_at, expiry=self.expiry, now=now or self._clock())

    async def get_order(self, order_id: str) -> OrderRecord:
        order = await self.store.get(order_id)
        if order is None:
            raise NotFoundError(
                message="Order not found",
                code="order.not_found",
                meta={"order_id": order_id},
            )
        return order

    async def acquire_and_run(
        self,
        order_id: str,
        action: LockAction,
        *,
        retries: int = 0,
        retry_delay_ms: int = 0,
    ) -> bool:
        """
        Run `action` while holding the lock on `order_id`.

        When the order is already locked, waits `retry_delay_ms` and tries
        again, at most `retries` times, then raises `LockBusyError`. The lock
        is released whatever happens inside `action`, and errors raised by
        `action` propagate unchanged. Returns True once `action` completed.
        """
        retries_left = min(max(0, int(retries)), self.max_retries)
        delay_seconds = max(0, int(retry_delay_ms)) / 1000

        while True:
            token = await self.store.try_acquire(order_id, self.expiry_seconds)
            if token is not None:
                break

            if retries_left <= 0:
                self._metrics.track_busy(will_retry=False)
                logger.info(
                    "Order lock busy",
                    order_id=order_id,
                    retries=retries,
                )
                raise LockBusyError(meta={"order_id": order_id})

            self._metrics.track_busy(will_retry=True)
            retries_left -= 1
            await asyncio.sleep(delay_seconds)

        self._metrics.track_acquired()
        logger.debug("Order locked", order_id=order_id, locked_at=token)
        started = time.perf_counter()

        try:
            result = action()
            if inspect.isawaitable(result):
                await result
        except BaseException:
            # The action's error wins over a failed release.
            await self._release(order_id, token, started, raise_errors=False)
            raise

        await self._release(order_id, token, started)
        return True

    async def lock(
        self,
        order_id: str,
        action: LockAction | None = None,
        *,
        retries: int = 0,
        retry_delay_ms: int = 0,
    ) -> bool:
        """Shorthand for `acquire_and_run`; without an action the lock is taken and dropped."""
        return await self.acquire_and_run(
            order_id,
            action or _noop,
            retries=retries,
            retry_delay_ms=retry_delay_ms,
        )

    async def _release(
        self,
        order_id: str,
        token: str,
        started: float,
        *,
        raise_errors: bool = True,
    ) -> None:
        held_seconds = time.perf_counter() - started
        try:
            released = await self.store.release(order_id, token)
        except Exception as exc:
            self._metrics.track_released(status="error", held_seconds=held_seconds)
            logger.error(
                "Failed to release order lock",
                order_id=order_id,
                locked_at=token,
                error=str(exc),
            )
            if raise_errors:
                raise
            return

        if released:
            self._metrics.track_released(status="released", held_seconds=held_seconds)
            logger.debug("Order unlocked", order_id=order_id, held_seconds=held_seconds)
        else:
            # Our lock expired and was swept or taken over while the action ran.
            self._metrics.track_released(status="lost", held_seconds=held_seconds)
            logger.warning(
                "Order lock was lost before release",
                order_id=order_id,
                locked_at=token,
                held_seconds=held_seconds,
            )

    async def clear_expired_locks(self, *, limit: int | None = None) -> ClearedLocks:
        """
        Remove every lock older than the expiry window.

        Expired rows are read in pages of `sweep_batch_size`, oldest first,
        until a short page comes back. `limit` caps the number of rows looked
        at in one call. Each cleared `lockedAt` is appended to
        `data.deadlocks`. A row whose lock changed between the scan and the
        update is left alone.
        """
        batch_size = self.sweep_batch_size if limit is None else max(1, int(limit))

        cleared: list[OrderRecord] = []
        after: tuple[str, str] | None = None
        while True:
            expired = await self.store.find_expired(self.expiry_seconds, batch_size, after=after)

            for order_id, locked_at in expired:
                order = await self.store.clear_expired(order_id, locked_at)
                if order is None:
                    logger.debug(
                        "Expired order lock changed before it could be cleared",
                        order_id=order_id,
                        locked_at=locked_at,
                    )
                    continue
                cleared.append(order)
                logger.warning(
                    "Cleared expired order lock",
                    order_id=order_id,
                    locked_at=locked_at,
                    deadlocks=len(order.data.deadlocks),
                )

            if limit is not None or len(expired) < batch_size:
                break
            last_id, last_locked_at = expired[-1]
            after = (last_locked_at, last_id)

        self._metrics.track_expired_cleared(len(cleared))
        return ClearedLocks(orders=cleared, count=len(cleared))


def _noop() -> None:
    return None
