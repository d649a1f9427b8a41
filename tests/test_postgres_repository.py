"""Tests for the Postgres summary_state CRUD layer."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from incident_relay.core.errors import ConfigurationError, ExternalServiceError
from incident_relay.crud.postgres.summary_states import PostgresSummaryRepository, seed_states
from incident_relay.schemas.state import SummaryState
from incident_relay.services.postgres import SCHEMA_SQL, create_postgres_pool, ensure_schema

NOW = datetime(2024, 12, 30, 10, 0, tzinfo=UTC)


def _row(system_key="default", summary="Incident ongoing", version=2):
    return {"system_key": system_key, "summary": summary, "last_received": NOW, "version": version}


@pytest.fixture
def pool():
    pool = MagicMock()
    pool.fetch = AsyncMock(return_value=[])
    pool.execute = AsyncMock(return_value="INSERT 0 1")
    pool.executemany = AsyncMock(return_value=None)
    return pool


class TestRepository:
    """Tests for PostgresSummaryRepository."""

    def test_exposes_only_store_operations(self):
        """The adapter offers exactly what SummaryStore calls."""
        public = {name for name in vars(PostgresSummaryRepository) if not name.startswith("_")}

        assert public == {"fetch_all", "upsert", "clear"}

    @pytest.mark.asyncio
    async def test_fetch_all_maps_rows(self, pool):
        pool.fetch.return_value = [_row(), _row("payments", None, 0)]

        states = await PostgresSummaryRepository(pool).fetch_all()

        assert states == [
            SummaryState(system_key="default", summary_text="Incident ongoing", last_activity_at=NOW, version=2),
            SummaryState(system_key="payments", summary_text="", last_activity_at=NOW, version=0),
        ]

    @pytest.mark.asyncio
    async def test_upsert_sends_every_column(self, pool):
        """The upsert overwrites summary, timestamp and version in one statement."""
        state = SummaryState(system_key="default", summary_text="Incident", last_activity_at=NOW, version=3)

        await PostgresSummaryRepository(pool).upsert(state)

        query, *params = pool.execute.await_args.args
        assert "ON CONFLICT (system_key) DO UPDATE" in query
        assert params == ["default", "Incident", NOW, 3]

    @pytest.mark.asyncio
    async def test_clear_only_touches_summary(self, pool):
        await PostgresSummaryRepository(pool).clear("default")

        query, key = pool.execute.await_args.args
        assert "SET summary = ''" in query
        assert "version" not in query
        assert key == "default"

    @pytest.mark.asyncio
    async def test_database_errors_become_external_service_errors(self, pool):
        pool.execute.side_effect = asyncpg.PostgresError("boom")
        state = SummaryState(system_key="default", summary_text="x", last_activity_at=NOW, version=1)

        with pytest.raises(ExternalServiceError) as exc_info:
            await PostgresSummaryRepository(pool).upsert(state)

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_loss_becomes_external_service_error(self, pool):
        pool.fetch.side_effect = ConnectionResetError("gone")

        with pytest.raises(ExternalServiceError):
            await PostgresSummaryRepository(pool).fetch_all()


class TestBootstrap:
    """Tests for schema creation and seeding."""

    @pytest.mark.asyncio
    async def test_seed_inserts_missing_rows_only(self, pool):
        await seed_states(pool, ["default", "payments"], now=NOW)

        query, params = pool.executemany.await_args.args
        assert "ON CONFLICT (system_key) DO NOTHING" in query
        assert params == [("default", NOW), ("payments", NOW)]

    @pytest.mark.asyncio
    async def test_ensure_schema(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        acquire = MagicMock()
        acquire.__aenter__ = AsyncMock(return_value=conn)
        acquire.__aexit__ = AsyncMock(return_value=None)
        pool = MagicMock()
        pool.acquire.return_value = acquire

        await ensure_schema(pool)

        conn.execute.assert_awaited_once_with(SCHEMA_SQL)

    @pytest.mark.asyncio
    async def test_pool_requires_url(self):
        with pytest.raises(ConfigurationError):
            async with create_postgres_pool(None):
                pass

    @pytest.mark.asyncio
    async def test_pool_connection_failure_is_fatal(self, monkeypatch):
        monkeypatch.setattr(asyncpg, "create_pool", AsyncMock(side_effect=OSError("refused")))

        with pytest.raises(ConfigurationError):
            async with create_postgres_pool("postgres://localhost/summary"):
                pass
