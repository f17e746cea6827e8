"""Bulk status changes for recurring contributions."""

from __future__ import annotations

from typing import Any

import structlog

from fundflow.db import client as db_client
from fundflow.orders.types import OrderStatus

logger = structlog.get_logger()


async def stop_active_subscriptions(
    collective_id: str,
    status: OrderStatus | str,
    *,
    message_for_contributors: str | None = None,
) -> int:
    """
    Move every ACTIVE order of a collective to `status` (usually PAUSED).

    The payment providers are told later: orders are flagged with
    `needsAsyncDeactivation` and picked up by the deactivation worker.
    Existing `data` keys, lock fields included, are kept.
    """
    new_status = OrderStatus(status).value
    patch: dict[str, Any] = {"needsAsyncDeactivation": True}
    if message_for_contributors is not None:
        patch["messageForContributors"] = message_for_contributors

    pool = await db_client.get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            UPDATE orders
            SET status = $1,
                data = COALESCE(data, '{}'::jsonb) || $2::jsonb,
                updated_at = NOW()
            WHERE collective_id = $3
              AND status = $4
            RETURNING id
            """,
            new_status,
            patch,
            collective_id,
            OrderStatus.ACTIVE.value,
        )

    logger.info(
        "Stopped active subscriptions",
        collective_id=collective_id,
        status=new_status,
        count=len(rows),
    )
    return len(rows)
