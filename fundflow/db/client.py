"""
Raw asyncpg pool for order statements.

Every statement fundflow issues is a single conditional UPDATE or a plain
read, so it talks to Postgres through one shared asyncpg pool. SQLAlchemy
is only used for the table metadata that alembic migrates.
"""

from __future__ import annotations

import json

import asyncpg
import structlog

from fundflow.config import get_settings

logger = structlog.get_logger()

_pool: asyncpg.Pool | None = None


def _asyncpg_dsn(database_url: str) -> str:
    # Settings carry the SQLAlchemy dialect prefix for alembic.
    return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)


async def _init_connection(conn: asyncpg.Connection) -> None:
    # asyncpg returns JSON/JSONB as strings unless codecs are registered.
    await conn.set_type_codec(
        "json",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
        format="text",
    )


async def get_db_pool() -> asyncpg.Pool:
    """Shared pool, created on first use."""
    global _pool
    if _pool is None:
        settings = get_settings()
        min_size = max(1, int(settings.db_pool_min_size))
        _pool = await asyncpg.create_pool(
            _asyncpg_dsn(str(settings.database_url)),
            init=_init_connection,
            min_size=min_size,
            max_size=max(min_size, int(settings.db_pool_max_size)),
        )
        logger.info("Database pool opened", min_size=min_size)
    return _pool


async def close_db_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")
