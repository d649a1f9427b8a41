from __future__ import annotations

import logging
import time

from incident_relay.core.logging import log_context
from incident_relay.orchestration.engine import Engine
from incident_relay.schemas.summaries import SummaryResponse

logger = logging.getLogger(__name__)


async def process_upload(
    engine: Engine,
    *,
    system_key: str,
    audio_bytes: bytes,
    filename: str,
) -> SummaryResponse:
    """Transcribe one recording and fold it into the system's running summary."""
    # Reject unknown systems before paying for transcription.
    engine.registry.get_system(system_key)

    with log_context(system_key=system_key):
        step_start = time.perf_counter()
        transcript = await engine.transcriber(audio_bytes, filename)
        logger.info(
            "transcribe %.2fms bytes=%s chars=%s",
            (time.perf_counter() - step_start) * 1000,
            len(audio_bytes),
            len(transcript),
        )

        state = await engine.session_manager.handle_transcript(system_key, transcript)
        return SummaryResponse.from_state(state)
