from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from incident_relay.api.deps.engine import get_optional_engine
from incident_relay.application.meta import health_status, readiness_status, status_snapshot
from incident_relay.orchestration.engine import Engine
from incident_relay.schemas.errors import ErrorResponse
from incident_relay.schemas.meta import HealthResponse, ReadyResponse, StatusResponse

router = APIRouter(prefix="/meta", tags=["meta"])


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return await health_status()


@router.get(
    "/ready",
    response_model=ReadyResponse,
    responses={503: {"model": ErrorResponse, "description": "Engine not started."}},
)
async def ready(engine: Annotated[Engine | None, Depends(get_optional_engine)]) -> ReadyResponse:
    return await readiness_status(engine)


@router.get("/status", response_model=StatusResponse)
async def status() -> StatusResponse:
    return await status_snapshot()
