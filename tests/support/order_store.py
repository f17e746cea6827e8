from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from fundflow.kernel.errors import NotFoundError
from fundflow.kernel.ids import new_prefixed_id
from fundflow.kernel.time import isoformat_z, parse_iso8601
from fundflow.orders.types import OrderRecord


@dataclass
class FakeOrderLockStore:
    """
    In-memory fake of `OrderLockStore` for unit tests.

    Each method does its check and its write without awaiting in between,
    which gives the same all-or-nothing behaviour as a conditional UPDATE
    on a single event loop.
    """

    clock: Callable[[], Any]
    rows: dict[str, dict[str, Any]] = field(default_factory=dict)
    release_error: Exception | None = None
    acquire_attempts: int = 0
    find_expired_calls: int = 0

    def add_order(
        self,
        *,
        order_id: str | None = None,
        status: str = "NEW",
        collective_id: str = "col_1",
        data: dict[str, Any] | None = None,
    ) -> str:
        order_id = order_id or new_prefixed_id("ord")
        self.rows[order_id] = {
            "id": order_id,
            "status": status,
            "collective_id": collective_id,
            "data": copy.deepcopy(data or {}),
            "updated_at": self.clock(),
        }
        return order_id

    def set_data(self, order_id: str, data: dict[str, Any]) -> None:
        self.rows[order_id]["data"] = copy.deepcopy(data)

    def _locked_at_dt(self, locked_at: str) -> datetime | None:
        try:
            return parse_iso8601(locked_at)
        except ValueError:
            return None

    def _expired(self, locked_at: str, expiry_seconds: int) -> bool:
        # Unreadable values never count as expired, like the guarded SQL cast.
        locked_at_dt = self._locked_at_dt(locked_at)
        if locked_at_dt is None:
            return False
        return locked_at_dt <= self.clock() - timedelta(seconds=expiry_seconds)

    async def try_acquire(self, order_id: str, expiry_seconds: int) -> str | None:
        self.acquire_attempts += 1
        row = self.rows.get(order_id)
        if row is None:
            raise NotFoundError(message="Order not found", code="order.not_found")
        locked_at = row["data"].get("lockedAt")
        if locked_at and not self._expired(locked_at, expiry_seconds):
            return None
        token = isoformat_z(self.clock())
        row["data"]["lockedAt"] = token
        row["updated_at"] = self.clock()
        return token

    async def release(self, order_id: str, token: str) -> bool:
        if self.release_error is not None:
            raise self.release_error
        row = self.rows.get(order_id)
        if row is None or row["data"].get("lockedAt") != token:
            return False
        del row["data"]["lockedAt"]
        row["updated_at"] = self.clock()
        return True

    async def find_expired(
        self,
        expiry_seconds: int,
        limit: int,
        after: tuple[str, str] | None = None,
    ) -> list[tuple[str, str]]:
        self.find_expired_calls += 1
        expired = sorted(
            (
                (parse_iso8601(row["data"]["lockedAt"]), row["id"], row["data"]["lockedAt"])
                for row in self.rows.values()
                if row["data"].get("lockedAt") and self._expired(row["data"]["lockedAt"], expiry_seconds)
            ),
        )
        if after is not None:
            cursor = (parse_iso8601(after[0]), after[1])
            expired = [item for item in expired if item[:2] > cursor]
        return [(order_id, locked_at) for _, order_id, locked_at in expired[: max(1, limit)]]

    async def clear_expired(self, order_id: str, locked_at: str) -> OrderRecord | None:
        row = self.rows.get(order_id)
        if row is None or row["data"].get("lockedAt") != locked_at:
            return None
        data = row["data"]
        data["deadlocks"] = [*data.get("deadlocks", []), data.pop("lockedAt")]
        row["updated_at"] = self.clock()
        return OrderRecord.from_row(copy.deepcopy(row))

    async def get(self, order_id: str) -> OrderRecord | None:
        row = self.rows.get(order_id)
        return OrderRecord.from_row(copy.deepcopy(row)) if row else None
