from __future__ import annotations

import logging
from dataclasses import dataclass

from incident_relay.core.config import AppConfig, Settings
from incident_relay.core.systems import SystemRegistry
from incident_relay.orchestration.reaper import InactivityReaper
from incident_relay.orchestration.session_manager import Clock, SessionManager, utc_now
from incident_relay.orchestration.summary_store import SummaryRepository, SummaryStore
from incident_relay.services.providers import create_provider
from incident_relay.services.providers.base import ProviderClient
from incident_relay.services.transcriber import Transcriber, create_transcriber
from incident_relay.services.webhook import WebhookDispatcher

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Everything the HTTP layer needs, wired once per process."""

    registry: SystemRegistry
    store: SummaryStore
    session_manager: SessionManager
    reaper: InactivityReaper
    transcriber: Transcriber

    async def start(self) -> None:
        await self.store.rehydrate()
        self.reaper.start()

    async def aclose(self) -> None:
        await self.reaper.stop()
        await self.session_manager.aclose()
        await self.session_manager.provider.aclose()
        await self.session_manager.webhook.aclose()
        logger.info("engine stopped")


def build_engine(
    config: AppConfig,
    settings: Settings,
    repository: SummaryRepository,
    *,
    provider: ProviderClient | None = None,
    webhook: WebhookDispatcher | None = None,
    transcriber: Transcriber | None = None,
    clock: Clock = utc_now,
) -> Engine:
    registry = SystemRegistry.from_config(config.systems)
    store = SummaryStore(repository)
    session_manager = SessionManager(
        registry=registry,
        store=store,
        provider=provider or create_provider(config.provider, settings),
        model=config.provider.model,
        webhook=webhook or WebhookDispatcher(config.webhook, timeout_seconds=settings.webhook_timeout_seconds),
        clock=clock,
    )
    reaper = InactivityReaper(
        session_manager,
        store,
        idle_threshold_seconds=config.idle_threshold_seconds,
        interval_seconds=config.reap_interval_seconds,
        clock=clock,
    )
    return Engine(
        registry=registry,
        store=store,
        session_manager=session_manager,
        reaper=reaper,
        transcriber=transcriber or create_transcriber(settings.groq_api_key, config.whisper_model),
    )
