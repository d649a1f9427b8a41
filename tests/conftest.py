"""Pytest configuration and fixtures."""

import asyncio
import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from incident_relay.core.config import WebhookConfig
from incident_relay.core.systems import System, SystemRegistry
from incident_relay.orchestration.session_manager import SessionManager
from incident_relay.orchestration.summary_store import SummaryStore
from incident_relay.schemas.state import SummaryState
from incident_relay.services.providers.base import ProviderClient
from incident_relay.services.webhook import WebhookDispatcher

INITIAL_PROMPT = "Summarize this transcription: {transcription}"
UPDATE_PROMPT = (
    "Here is text summary:\n{summary}\n"
    "Please update this summary with new information from this transcription:\n{transcription}"
)
WEBHOOK_URL = "https://hooks.example.test/incident"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 12, 30, 10, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemorySummaryRepository:
    """Stands in for the summary_state table; survives SummaryStore restarts."""

    def __init__(self, states=None):
        self.rows: dict[str, SummaryState] = {s.system_key: s for s in states or []}
        self.fail_writes = False
        self.upserts = 0

    async def fetch_all(self):
        return list(self.rows.values())

    async def upsert(self, state):
        if self.fail_writes:
            raise OSError("database unavailable")
        self.upserts += 1
        self.rows[state.system_key] = state

    async def clear(self, system_key):
        if self.fail_writes:
            raise OSError("database unavailable")
        self.rows[system_key] = self.rows[system_key].cleared()


class ScriptedProvider(ProviderClient):
    """Records prompts; returns queued responses or "summary N"."""

    name = "scripted"

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.prompts: list[str] = []
        self.models: list[str] = []
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, prompt, model):
        self.prompts.append(prompt)
        self.models.append(model)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
            if self.responses:
                return self.responses.pop(0)
            return f"summary {len(self.prompts)}"
        finally:
            self.in_flight -= 1


class WebhookRecorder:
    """httpx MockTransport handler that records delivered bodies."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def bodies(self) -> list[str]:
        return [request.content.decode("utf-8") for request in self.requests]

    @property
    def summaries(self) -> list[str]:
        return [json.loads(body)["summary"] for body in self.bodies]


def build_dispatcher(recorder, url=WEBHOOK_URL, template='{"summary":"{summary}"}'):
    return WebhookDispatcher(
        WebhookConfig(url=url, template=template),
        client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return SystemRegistry(
        [
            System(key="default", initial_prompt=INITIAL_PROMPT, update_prompt=UPDATE_PROMPT),
            System(key="payments", initial_prompt=INITIAL_PROMPT, update_prompt=UPDATE_PROMPT),
        ]
    )


@pytest.fixture
def repository():
    return InMemorySummaryRepository()


@pytest.fixture
def store(repository):
    return SummaryStore(repository)


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def webhook_recorder():
    return WebhookRecorder()


@pytest.fixture
def dispatcher(webhook_recorder):
    return build_dispatcher(webhook_recorder)


@pytest.fixture
def manager(registry, store, provider, dispatcher, clock):
    return SessionManager(
        registry=registry,
        store=store,
        provider=provider,
        model="gpt-test",
        webhook=dispatcher,
        clock=clock,
    )
