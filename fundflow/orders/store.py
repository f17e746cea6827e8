"""
Persisted state behind the order lock.

Every statement here is a single conditional UPDATE (or a plain read), so
exclusivity comes from Postgres row locking and not from process memory:
two racing acquirers serialize on the row and the loser re-evaluates the
WHERE clause against the winner's version. All lock timestamps come from the
database clock (`NOW()`) so workers with skewed clocks agree on expiry.
"""

from __future__ import annotations

from typing import Protocol

from fundflow.db import client as db_client
from fundflow.kernel.errors import NotFoundError
from fundflow.orders.types import OrderRecord

# Same shape as JavaScript's Date#toISOString(), e.g. 2026-01-01T00:00:00.000Z
_NOW_ISO_SQL = """to_char(NOW() AT TIME ZONE 'UTC', 'YYYY-MM-DD"T"HH24:MI:SS.MS"Z"')"""

# `lockedAt` as timestamptz, or NULL when the value is not an ISO-8601
# timestamp. A NULL never compares as expired, so one bad row cannot make
# the cast fail for the whole statement.
_LOCKED_AT_TS_SQL = r"""(CASE
        WHEN data->>'lockedAt' ~ '^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:?\d{2})$'
        THEN (data->>'lockedAt')::timestamptz
    END)"""


class OrderLockStore(Protocol):
    """Storage primitives the lock manager relies on."""

    async def try_acquire(self, order_id: str, expiry_seconds: int) -> str | None:
        """Set `lockedAt` if absent or expired. Returns the new value, or None if busy."""
        ...

    async def release(self, order_id: str, token: str) -> bool:
        """Remove `lockedAt` if it still equals `token`."""
        ...

    async def find_expired(
        self,
        expiry_seconds: int,
        limit: int,
        after: tuple[str, str] | None = None,
    ) -> list[tuple[str, str]]:
        """
        (order_id, lockedAt) pairs for expired locks, oldest first.

        `after` is the `(lockedAt, order_id)` of the last row of the previous
        page. Rows whose `lockedAt` is not a timestamp are never returned.
        """
        ...

    async def clear_expired(self, order_id: str, locked_at: str) -> OrderRecord | None:
        """Move `lockedAt` into `deadlocks` if it still equals `locked_at`."""
        ...

    async def get(self, order_id: str) -> OrderRecord | None:
        ...


class PostgresOrderLockStore:
    """`OrderLockStore` over the `orders` table using the raw asyncpg pool."""

    async def try_acquire(self, order_id: str, expiry_seconds: int) -> str | None:
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            token = await conn.fetchval(
                f"""
                UPDATE orders
                SET data = jsonb_set(
                        COALESCE(data, '{{}}'::jsonb),
                        '{{lockedAt}}',
                        to_jsonb({_NOW_ISO_SQL})
                    ),
                    updated_at = NOW()
                WHERE id = $1
                  AND (
                    data->>'lockedAt' IS NULL
                    OR {_LOCKED_AT_TS_SQL} <= NOW() - make_interval(secs => $2)
                  )
                RETURNING data->>'lockedAt'
                """,
                order_id,
                float(expiry_seconds),
            )
            if token is not None:
                return str(token)

            exists = await conn.fetchval("SELECT 1 FROM orders WHERE id = $1", order_id)

        if not exists:
            raise NotFoundError(
                message="Order not found",
                code="order.not_found",
                meta={"order_id": order_id},
            )
        return None

    async def release(self, order_id: str, token: str) -> bool:
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            updated = await conn.execute(
                """
                UPDATE orders
                SET data = data - 'lockedAt',
                    updated_at = NOW()
                WHERE id = $1
                  AND data->>'lockedAt' = $2
                """,
                order_id,
                token,
            )
        # asyncpg returns strings like "UPDATE 1"
        return str(updated).endswith(" 1")

    async def find_expired(
        self,
        expiry_seconds: int,
        limit: int,
        after: tuple[str, str] | None = None,
    ) -> list[tuple[str, str]]:
        after_locked_at, after_id = after if after else (None, None)
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT id, data->>'lockedAt' AS locked_at
                FROM orders
                WHERE data ? 'lockedAt'
                  AND {_LOCKED_AT_TS_SQL} <= NOW() - make_interval(secs => $1)
                  AND (
                    $3::text IS NULL
                    OR ({_LOCKED_AT_TS_SQL}, id) > ($3::text::timestamptz, $4::text)
                  )
                ORDER BY {_LOCKED_AT_TS_SQL} ASC, id ASC
                LIMIT $2
                """,
                float(expiry_seconds),
                int(max(1, limit)),
                after_locked_at,
                after_id,
            )
        return [(str(row["id"]), str(row["locked_at"])) for row in rows or []]

    async def clear_expired(self, order_id: str, locked_at: str) -> OrderRecord | None:
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE orders
                SET data = jsonb_set(
                        data - 'lockedAt',
                        '{deadlocks}',
                        COALESCE(data->'deadlocks', '[]'::jsonb) || jsonb_build_array(data->'lockedAt')
                    ),
                    updated_at = NOW()
                WHERE id = $1
                  AND data->>'lockedAt' = $2
                RETURNING id, status, collective_id, data, updated_at
                """,
                order_id,
                locked_at,
            )
        return OrderRecord.from_row(row) if row else None

    async def get(self, order_id: str) -> OrderRecord | None:
        pool = await db_client.get_db_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, status, collective_id, data, updated_at
                FROM orders
                WHERE id = $1
                """,
                order_id,
            )
        return OrderRecord.from_row(row) if row else None
