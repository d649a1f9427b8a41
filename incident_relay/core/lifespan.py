from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from incident_relay.core.config import Settings, load_app_config
from incident_relay.crud.postgres.summary_states import PostgresSummaryRepository, seed_states
from incident_relay.orchestration.engine import Engine, build_engine
from incident_relay.orchestration.session_manager import utc_now
from incident_relay.services.postgres import create_postgres_pool, ensure_schema

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Wire the engine before the first request and tear it down on shutdown.

    Any configuration or database failure raises here, so the server never
    starts accepting uploads in a half-configured state. An engine already
    placed on ``app.state`` (tests, embedding) is started but not rebuilt.
    """
    preset: Engine | None = getattr(app.state, "engine", None)
    if preset is not None:
        await preset.start()
        try:
            yield
        finally:
            await preset.aclose()
        return

    settings: Settings = app.state.settings
    config = load_app_config(settings.config_file)
    database_url = settings.database_url or config.database_url

    async with create_postgres_pool(database_url) as pool:
        await ensure_schema(pool)
        engine = build_engine(config, settings, PostgresSummaryRepository(pool))
        await seed_states(pool, engine.registry.keys(), now=utc_now())
        await engine.start()
        app.state.engine = engine
        logger.info("engine ready", extra={"systems": ",".join(engine.registry)})
        try:
            yield
        finally:
            await engine.aclose()
            app.state.engine = None
