from typing import Annotated

from fastapi import APIRouter, Depends

from incident_relay.api.deps.engine import get_engine
from incident_relay.application.systems import get_system_summary, list_systems
from incident_relay.orchestration.engine import Engine
from incident_relay.schemas.errors import ErrorResponse
from incident_relay.schemas.summaries import SummaryResponse, SystemsResponse

router = APIRouter(prefix="/systems", tags=["systems"])


@router.get("", response_model=SystemsResponse)
async def get_systems(engine: Annotated[Engine, Depends(get_engine)]) -> SystemsResponse:
    return await list_systems(engine)


@router.get(
    "/{system_key}/summary",
    response_model=SummaryResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown system."}},
)
async def get_summary(system_key: str, engine: Annotated[Engine, Depends(get_engine)]) -> SummaryResponse:
    return await get_system_summary(engine, system_key)
