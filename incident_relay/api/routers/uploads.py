from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from incident_relay.api.deps.engine import get_engine
from incident_relay.application.uploads import process_upload
from incident_relay.orchestration.engine import Engine
from incident_relay.schemas.errors import ErrorResponse
from incident_relay.schemas.summaries import SummaryResponse

router = APIRouter(tags=["uploads"])


@router.post(
    "/upload",
    response_model=SummaryResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing fields, unknown system, or untranscribable audio."},
        413: {"model": ErrorResponse, "description": "Upload too large."},
        502: {"model": ErrorResponse, "description": "Summary provider failed; summary unchanged."},
        503: {"model": ErrorResponse, "description": "Engine not started."},
    },
)
async def upload_audio(
    file: Annotated[UploadFile, File()],
    system_key: Annotated[str, Form()],
    engine: Annotated[Engine, Depends(get_engine)],
) -> SummaryResponse:
    audio_bytes = await file.read()
    return await process_upload(
        engine,
        system_key=system_key,
        audio_bytes=audio_bytes,
        filename=file.filename or "audio.wav",
    )
