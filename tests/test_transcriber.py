"""Tests for the Groq-backed transcriber."""

from types import SimpleNamespace

import groq
import httpx
import pytest

from incident_relay.core.errors import TranscriptionError
from incident_relay.services import transcriber as transcriber_module
from incident_relay.services.transcriber import create_transcriber, transcribe_bytes


class FakeGroq:
    """Mimics ``Groq(api_key=...).audio.transcriptions.create``."""

    calls: list[dict] = []
    result: object = SimpleNamespace(text=" server down at 10am ")
    error: Exception | None = None

    def __init__(self, api_key):
        self.api_key = api_key
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        FakeGroq.calls.append(kwargs)
        if FakeGroq.error is not None:
            raise FakeGroq.error
        return FakeGroq.result


@pytest.fixture
def fake_groq(monkeypatch):
    FakeGroq.calls = []
    FakeGroq.result = SimpleNamespace(text=" server down at 10am ")
    FakeGroq.error = None
    monkeypatch.setattr(transcriber_module, "Groq", FakeGroq)
    return FakeGroq


class TestTranscribeBytes:
    def test_returns_stripped_text(self, fake_groq):
        text = transcribe_bytes(b"audio", "report.wav", "gsk-test", "whisper-large-v3-turbo")

        assert text == "server down at 10am"
        call = fake_groq.calls[0]
        assert call["file"] == ("report.wav", b"audio")
        assert call["model"] == "whisper-large-v3-turbo"
        assert call["language"] == "en"

    def test_missing_api_key(self, fake_groq):
        with pytest.raises(TranscriptionError):
            transcribe_bytes(b"audio", "report.wav", None, "whisper-large-v3-turbo")
        assert fake_groq.calls == []

    def test_empty_audio(self, fake_groq):
        with pytest.raises(TranscriptionError):
            transcribe_bytes(b"", "report.wav", "gsk-test", "whisper-large-v3-turbo")

    def test_blank_transcript(self, fake_groq):
        fake_groq.result = SimpleNamespace(text="   ")

        with pytest.raises(TranscriptionError):
            transcribe_bytes(b"audio", "report.wav", "gsk-test", "whisper-large-v3-turbo")

    def test_api_error_is_mapped(self, fake_groq):
        fake_groq.error = groq.APIConnectionError(request=httpx.Request("POST", "https://api.groq.com"))

        with pytest.raises(TranscriptionError) as exc_info:
            transcribe_bytes(b"audio", "report.wav", "gsk-test", "whisper-large-v3-turbo")

        assert exc_info.value.status_code == 400


class TestCreateTranscriber:
    @pytest.mark.asyncio
    async def test_runs_off_loop(self, fake_groq):
        transcribe = create_transcriber("gsk-test", "whisper-large-v3")

        assert await transcribe(b"audio", "clip.mp3") == "server down at 10am"
        assert fake_groq.calls[0]["model"] == "whisper-large-v3"
