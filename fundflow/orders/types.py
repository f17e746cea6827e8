"""Order types used by the lock manager and the subscription helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from fundflow.kernel.time import parse_iso8601


class OrderStatus(str, Enum):
    NEW = "NEW"
    REQUIRE_CLIENT_CONFIRMATION = "REQUIRE_CLIENT_CONFIRMATION"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"
    ERROR = "ERROR"


class OrderData(BaseModel):
    """
    Typed view over the `orders.data` JSONB bag.

    Lock fields are named so their invariants can be checked on their own.
    Unknown business keys are kept as extras and written back untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    locked_at: str | None = Field(default=None, alias="lockedAt")
    deadlocks: list[str] = Field(default_factory=list)
    message_for_contributors: str | None = Field(default=None, alias="messageForContributors")
    needs_async_deactivation: bool | None = Field(default=None, alias="needsAsyncDeactivation")

    @classmethod
    def from_json(cls, value: Mapping[str, Any] | None) -> "OrderData":
        return cls.model_validate(dict(value or {}))

    def to_json(self) -> dict[str, Any]:
        """Dump with the camelCase keys stored in the database."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude_unset=True)


def lock_is_live(locked_at: str | None, *, expiry: timedelta, now: datetime) -> bool:
    """
    True if `locked_at` is set and younger than `expiry` at `now`.

    A value that cannot be parsed is treated as a live lock.
    """
    if not locked_at:
        return False
    try:
        locked_at_dt = parse_iso8601(locked_at)
    except ValueError:
        return True
    return now - locked_at_dt < expiry


@dataclass(frozen=True)
class OrderRecord:
    id: str
    status: str
    data: OrderData
    collective_id: str | None = None
    updated_at: datetime | None = None

    @property
    def locked_at(self) -> str | None:
        return self.data.locked_at

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "OrderRecord":
        return cls(
            id=str(row["id"]),
            status=str(row["status"]),
            data=OrderData.from_json(row["data"]),
            collective_id=row.get("collective_id"),
            updated_at=row.get("updated_at"),
        )
