"""Postgres summary_state CRUD."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, NoReturn

import asyncpg

from incident_relay.core.errors import ExternalServiceError
from incident_relay.schemas.state import SummaryState

_SELECT_COLUMNS = "system_key, summary, last_received, version"


def _raise_for_postgres_error(exc: Exception, fallback_message: str) -> NoReturn:
    raise ExternalServiceError(fallback_message) from exc


def _row_to_state(row: Mapping[str, Any]) -> SummaryState:
    return SummaryState(
        system_key=row["system_key"],
        summary_text=row["summary"] or "",
        last_activity_at=row["last_received"],
        version=int(row["version"]),
    )


async def fetch_all_states(pool: asyncpg.Pool) -> list[SummaryState]:
    try:
        rows = await pool.fetch(f"SELECT {_SELECT_COLUMNS} FROM summary_state ORDER BY system_key")
    except (OSError, asyncpg.PostgresError) as exc:
        _raise_for_postgres_error(exc, "Failed to fetch summary states.")
    return [_row_to_state(row) for row in rows]


async def upsert_state(pool: asyncpg.Pool, state: SummaryState) -> None:
    """Insert or overwrite one row; last writer wins."""
    try:
        await pool.execute(
            """
            INSERT INTO summary_state (system_key, summary, last_received, version)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (system_key) DO UPDATE
            SET summary = EXCLUDED.summary,
                last_received = EXCLUDED.last_received,
                version = EXCLUDED.version
            """,
            state.system_key,
            state.summary_text,
            state.last_activity_at,
            state.version,
        )
    except (OSError, asyncpg.PostgresError) as exc:
        _raise_for_postgres_error(exc, "Failed to persist summary state.")


async def clear_summary(pool: asyncpg.Pool, system_key: str) -> None:
    try:
        await pool.execute("UPDATE summary_state SET summary = '' WHERE system_key = $1", system_key)
    except (OSError, asyncpg.PostgresError) as exc:
        _raise_for_postgres_error(exc, "Failed to clear summary state.")


async def seed_states(pool: asyncpg.Pool, system_keys: Iterable[str], *, now: datetime) -> None:
    """Create an empty row for each system that does not have one yet."""
    try:
        await pool.executemany(
            """
            INSERT INTO summary_state (system_key, summary, last_received, version)
            VALUES ($1, '', $2, 0)
            ON CONFLICT (system_key) DO NOTHING
            """,
            [(key, now) for key in system_keys],
        )
    except (OSError, asyncpg.PostgresError) as exc:
        _raise_for_postgres_error(exc, "Failed to seed summary states.")


class PostgresSummaryRepository:
    """SummaryRepository backed by the summary_state table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def fetch_all(self) -> list[SummaryState]:
        return await fetch_all_states(self.pool)

    async def upsert(self, state: SummaryState) -> None:
        await upsert_state(self.pool, state)

    async def clear(self, system_key: str) -> None:
        await clear_summary(self.pool, system_key)
