"""asyncpg connection pool for durable summary state."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from incident_relay.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 10
CONNECT_TIMEOUT_SECONDS = 10

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS summary_state (
    system_key TEXT PRIMARY KEY,
    summary TEXT NOT NULL DEFAULT '',
    last_received TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    version BIGINT NOT NULL DEFAULT 0
)
"""


async def ensure_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("summary_state schema ready")


@asynccontextmanager
async def create_postgres_pool(database_url: str | None) -> AsyncIterator[asyncpg.Pool]:
    """Open a pool for the lifetime of the app; failure to connect is fatal."""
    if not database_url:
        raise ConfigurationError("DATABASE_URL is not configured.")

    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=POOL_MIN_SIZE,
            max_size=POOL_MAX_SIZE,
            timeout=CONNECT_TIMEOUT_SECONDS,
        )
    except (OSError, asyncpg.PostgresError) as exc:
        logger.error("failed to create postgres pool", exc_info=exc)
        raise ConfigurationError(f"Failed to connect to Postgres: {exc}") from exc

    logger.info("postgres pool established")
    try:
        yield pool
    finally:
        await pool.close()
        logger.info("postgres pool closed")
