from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from groq import APIError, Groq

from incident_relay.core.errors import TranscriptionError

# (audio_bytes, filename) -> transcript text
Transcriber = Callable[[bytes, str], Awaitable[str]]


def _extract_groq_text(response: Any) -> str:
    text = getattr(response, "text", None)
    if not isinstance(text, str):
        raise TranscriptionError("Transcription response missing text.")
    if not text.strip():
        raise TranscriptionError("Empty transcript.")
    return text.strip()


def transcribe_bytes(audio_bytes: bytes, filename: str, api_key: str | None, model: str) -> str:
    if not api_key:
        raise TranscriptionError("Missing GROQ_API_KEY.")
    if not audio_bytes:
        raise TranscriptionError("Audio upload is empty.")

    client = Groq(api_key=api_key)
    try:
        response = client.audio.transcriptions.create(
            file=(filename or "audio.wav", audio_bytes),
            model=model,
            language="en",
            response_format="json",
            temperature=0.0,
        )
    except APIError as exc:
        raise TranscriptionError("Transcription service rejected the audio.") from exc
    return _extract_groq_text(response)


def create_transcriber(api_key: str | None, model: str) -> Transcriber:
    """Bind credentials and run the blocking SDK call off the event loop."""

    async def transcribe(audio_bytes: bytes, filename: str) -> str:
        return await asyncio.to_thread(transcribe_bytes, audio_bytes, filename, api_key, model)

    return transcribe
