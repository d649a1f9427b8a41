from __future__ import annotations

import logging
import time

from incident_relay import __version__
from incident_relay.core.errors import NotReadyError
from incident_relay.orchestration.engine import Engine
from incident_relay.schemas.meta import HealthResponse, ReadyResponse, StatusResponse

_START_TIME = time.monotonic()

logger = logging.getLogger(__name__)


async def health_status() -> HealthResponse:
    return HealthResponse(status="ok")


async def readiness_status(engine: Engine | None) -> ReadyResponse:
    if engine is None:
        logger.warning("readiness check failed: engine not started")
        raise NotReadyError("Summary engine is not running.")
    if not engine.reaper.running:
        logger.warning("readiness check failed: reaper not running")
        raise NotReadyError("Inactivity reaper is not running.")
    return ReadyResponse(status="ok", systems=len(engine.registry))


async def status_snapshot() -> StatusResponse:
    uptime_seconds = time.monotonic() - _START_TIME
    return StatusResponse(
        status="ok",
        version=__version__,
        uptime_seconds=uptime_seconds,
    )
