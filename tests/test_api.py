"""HTTP tests against the FastAPI app with an in-memory engine."""

import pytest
from fastapi.testclient import TestClient

from incident_relay.api.app import create_app
from incident_relay.core.config import Settings, parse_app_config
from incident_relay.core.errors import ProviderError, TranscriptionError
from incident_relay.orchestration.engine import build_engine

from .conftest import InMemorySummaryRepository, ScriptedProvider, WebhookRecorder, build_dispatcher

CONFIG = """
[provider]
kind = "openai"
model = "gpt-test"

[webhook]
url = "https://hooks.example.test/incident"

[[systems]]
key = "default"
initial_prompt = "Summarize this transcription: {transcription}"
update_prompt = "Here is text summary:\\n{summary}\\nUpdate it with:\\n{transcription}"

[[systems]]
key = "payments"
initial_prompt = "Summarize: {transcription}"
update_prompt = "{summary} / {transcription}"
"""

AUDIO = ("report.wav", b"RIFF0000WAVEfmt ", "audio/wav")


class FakeTranscriber:
    def __init__(self, transcripts=None, error=None):
        self.transcripts = dict(transcripts or {})
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    async def __call__(self, audio_bytes: bytes, filename: str) -> str:
        self.calls.append((audio_bytes, filename))
        if self.error is not None:
            raise self.error
        return self.transcripts.get(filename, "server down at 10am")


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def harness(settings, clock):
    provider = ScriptedProvider()
    transcriber = FakeTranscriber()
    recorder = WebhookRecorder()
    repository = InMemorySummaryRepository()
    engine = build_engine(
        parse_app_config(CONFIG),
        settings,
        repository,
        provider=provider,
        webhook=build_dispatcher(recorder),
        transcriber=transcriber,
        clock=clock,
    )
    app = create_app(settings, engine=engine)
    with TestClient(app) as client:
        yield client, provider, transcriber, recorder, repository


class TestUpload:
    """Tests for POST /upload."""

    def test_first_upload_creates_summary(self, harness):
        client, provider, transcriber, recorder, repository = harness
        provider.responses = ["Incident: server down at 10am"]

        response = client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})

        assert response.status_code == 200
        body = response.json()
        assert body["system_key"] == "default"
        assert body["summary"] == "Incident: server down at 10am"
        assert body["version"] == 1
        assert transcriber.calls == [(AUDIO[1], "report.wav")]
        assert provider.prompts == ["Summarize this transcription: server down at 10am"]
        assert repository.rows["default"].summary_text == "Incident: server down at 10am"
        assert response.headers["X-Request-Id"]

    def test_second_upload_updates_summary(self, harness):
        client, provider, _transcriber, _recorder, _repository = harness
        provider.responses = ["Incident open", "Incident resolved"]

        client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})
        response = client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})

        assert response.json()["version"] == 2
        assert "Incident open" in provider.prompts[1]

    def test_webhook_receives_summary(self, settings, clock):
        """The webhook fires once per successful update; drained on shutdown."""
        recorder = WebhookRecorder()
        engine = build_engine(
            parse_app_config(CONFIG),
            settings,
            InMemorySummaryRepository(),
            provider=ScriptedProvider(["Incident: server down at 10am"]),
            webhook=build_dispatcher(recorder),
            transcriber=FakeTranscriber(),
            clock=clock,
        )

        with TestClient(create_app(settings, engine=engine)) as client:
            client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})

        assert recorder.bodies == ['{"summary":"Incident: server down at 10am"}']

    def test_unknown_system(self, harness):
        """Unknown keys are a 400 and nothing is transcribed."""
        client, provider, transcriber, _recorder, _repository = harness

        response = client.post("/upload", files={"file": AUDIO}, data={"system_key": "nope"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "unknown_system"
        assert transcriber.calls == []
        assert provider.prompts == []

    def test_missing_system_key(self, harness):
        client = harness[0]

        response = client.post("/upload", files={"file": AUDIO})

        assert response.status_code == 400
        assert response.json() == {"error": {"code": "invalid_request", "message": "Missing field(s): system_key"}}

    def test_missing_file(self, harness):
        client = harness[0]

        response = client.post("/upload", data={"system_key": "default"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_request"

    def test_transcription_failure(self, harness):
        client, provider, transcriber, _recorder, _repository = harness
        transcriber.error = TranscriptionError("Transcription service rejected the audio.")

        response = client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "transcription_failed"
        assert provider.prompts == []

    def test_provider_failure_leaves_summary(self, harness):
        """A failed completion is a 502 and the stored summary is unchanged."""
        client, provider, _transcriber, recorder, repository = harness
        provider.responses = ["Incident open"]
        client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})
        provider.error = ProviderError("openai returned HTTP 401.", transient=False, status_code=401)

        response = client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "summarization_failed"
        assert repository.rows["default"].summary_text == "Incident open"
        assert repository.rows["default"].version == 1

    def test_request_too_large(self, clock):
        settings = Settings(_env_file=None, MAX_REQUEST_BYTES=16)
        engine = build_engine(
            parse_app_config(CONFIG),
            settings,
            InMemorySummaryRepository(),
            provider=ScriptedProvider(),
            webhook=build_dispatcher(WebhookRecorder()),
            transcriber=FakeTranscriber(),
            clock=clock,
        )

        with TestClient(create_app(settings, engine=engine)) as client:
            response = client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})

        assert response.status_code == 413
        assert response.json()["error"]["code"] == "request_too_large"


class TestSystems:
    """Tests for the read-only system endpoints."""

    def test_list_systems(self, harness):
        response = harness[0].get("/systems")

        assert response.status_code == 200
        assert response.json() == {"systems": ["default", "payments"]}

    def test_summary_before_any_upload(self, harness):
        response = harness[0].get("/systems/payments/summary")

        assert response.status_code == 200
        assert response.json()["summary"] == ""
        assert response.json()["version"] == 0

    def test_summary_after_upload(self, harness):
        client, provider, *_ = harness
        provider.responses = ["Incident open"]
        client.post("/upload", files={"file": AUDIO}, data={"system_key": "payments"})

        response = client.get("/systems/payments/summary")

        assert response.json()["summary"] == "Incident open"
        assert response.json()["version"] == 1

    def test_unknown_system_is_404(self, harness):
        response = harness[0].get("/systems/nope/summary")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"


class TestMeta:
    """Tests for /meta endpoints."""

    def test_health(self, harness):
        assert harness[0].get("/meta/health").json() == {"status": "ok"}

    def test_ready(self, harness):
        response = harness[0].get("/meta/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "systems": 2}

    def test_not_ready_without_engine(self, settings):
        """Without a running lifespan there is no engine and uploads are refused."""
        client = TestClient(create_app(settings))

        ready = client.get("/meta/ready")
        upload = client.post("/upload", files={"file": AUDIO}, data={"system_key": "default"})

        assert ready.status_code == 503
        assert upload.status_code == 503

    def test_status(self, harness):
        body = harness[0].get("/meta/status").json()

        assert body["status"] == "ok"
        assert body["version"] == "0.1.0"
