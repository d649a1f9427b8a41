from __future__ import annotations

from incident_relay.core.errors import NotFoundError, UnknownSystemError
from incident_relay.orchestration.engine import Engine
from incident_relay.schemas.summaries import SummaryResponse, SystemsResponse


async def list_systems(engine: Engine) -> SystemsResponse:
    return SystemsResponse(systems=sorted(engine.registry))


async def get_system_summary(engine: Engine, system_key: str) -> SummaryResponse:
    try:
        state = engine.session_manager.snapshot(system_key)
    except UnknownSystemError as exc:
        raise NotFoundError(exc.detail) from exc
    return SummaryResponse.from_state(state)
