"""Per-system summary updates: prompt, complete, persist, notify."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from incident_relay.core.constants import WEBHOOK_DRAIN_TIMEOUT_SECONDS
from incident_relay.core.errors import ProviderError, SummarizationError
from incident_relay.core.logging import log_context
from incident_relay.core.systems import SystemRegistry
from incident_relay.orchestration.locks import KeyedLocks
from incident_relay.orchestration.summary_store import SummaryStore
from incident_relay.schemas.state import SummaryState
from incident_relay.services.providers.base import ProviderClient
from incident_relay.services.webhook import WebhookDispatcher

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class SessionManager:
    """
    The only writer of summary state.

    Every mutation for a system key runs inside that key's lock, so the Nth
    update always builds its prompt from the summary produced by the (N-1)th.
    Different keys proceed concurrently.
    """

    def __init__(
        self,
        *,
        registry: SystemRegistry,
        store: SummaryStore,
        provider: ProviderClient,
        model: str,
        webhook: WebhookDispatcher,
        clock: Clock = utc_now,
    ) -> None:
        self.registry = registry
        self.store = store
        self.provider = provider
        self.model = model
        self.webhook = webhook
        self.clock = clock
        self.locks = KeyedLocks()
        self._webhook_tasks: set[asyncio.Task[bool]] = set()
        self._last_delivery: dict[str, asyncio.Task[bool]] = {}

    def snapshot(self, system_key: str) -> SummaryState:
        """Current state for a known system; a blank state if none was stored yet."""
        self.registry.get_system(system_key)
        state = self.store.load(system_key)
        if state is None:
            return SummaryState(system_key=system_key, summary_text="", last_activity_at=self.clock(), version=0)
        return state

    async def handle_transcript(self, system_key: str, text: str) -> SummaryState:
        system = self.registry.get_system(system_key)

        if not text.strip():
            # Nothing happened; do not refresh the inactivity clock.
            return self.snapshot(system_key)

        with log_context(system_key=system_key):
            async with self.locks.hold(system_key):
                current = self.snapshot(system_key)
                prompt = system.render(current.summary_text, text)
                mode = "initial" if current.is_empty else "update"

                step_start = time.perf_counter()
                try:
                    summary = await self.provider.complete(prompt, self.model)
                except ProviderError as exc:
                    logger.warning(
                        "summarization failed mode=%s transient=%s error=%s",
                        mode,
                        exc.transient,
                        exc.detail,
                    )
                    raise SummarizationError(f"Failed to update summary: {exc.detail}") from exc
                except Exception as exc:
                    logger.exception("summarization failed mode=%s", mode)
                    raise SummarizationError("Failed to update summary: unexpected provider failure.") from exc

                updated = current.advanced(summary, now=self.clock())
                try:
                    await self.store.upsert(updated)
                except Exception as exc:
                    logger.exception("failed to persist summary version=%s", updated.version)
                    raise SummarizationError("Failed to update summary: could not persist it.") from exc
                logger.info(
                    "summary updated mode=%s version=%s %.2fms",
                    mode,
                    updated.version,
                    (time.perf_counter() - step_start) * 1000,
                )
                # Scheduled under the lock so deliveries are chained in version order.
                self._schedule_webhook(updated)

            return updated

    def _schedule_webhook(self, state: SummaryState) -> None:
        previous = self._last_delivery.get(state.system_key)
        task = asyncio.create_task(self._deliver_after(previous, state))
        self._last_delivery[state.system_key] = task
        self._webhook_tasks.add(task)
        task.add_done_callback(self._webhook_tasks.discard)
        task.add_done_callback(lambda done: self._forget_delivery(state.system_key, done))

    def _forget_delivery(self, system_key: str, task: asyncio.Task[bool]) -> None:
        if self._last_delivery.get(system_key) is task:
            del self._last_delivery[system_key]

    async def _deliver_after(self, previous: asyncio.Task[bool] | None, state: SummaryState) -> bool:
        """Post once the previous delivery for the same system has finished."""
        if previous is not None:
            # wait() does not raise when the previous delivery failed or was cancelled.
            await asyncio.wait({previous})
        return await self.webhook.dispatch(state.system_key, state.summary_text)

    async def clear_if_idle(self, system_key: str, *, now: datetime, idle_threshold: timedelta) -> bool:
        """
        Clear a stale summary unless an update holds the key right now.

        Returns True only when the summary was actually cleared. Staleness is
        re-checked under the lock because an update may have landed since
        the caller looked.
        """
        with log_context(system_key=system_key):
            async with self.locks.try_hold(system_key) as acquired:
                if not acquired:
                    logger.debug("update in flight, skipping clear")
                    return False

                state = self.store.load(system_key)
                if state is None or state.is_empty:
                    return False
                if now - state.last_activity_at <= idle_threshold:
                    return False

                await self.store.clear(system_key)
                logger.info("summary cleared after inactivity version=%s", state.version)
                return True

    async def aclose(self, timeout_seconds: float = WEBHOOK_DRAIN_TIMEOUT_SECONDS) -> None:
        """Give in-flight webhook deliveries a bounded chance to finish."""
        if not self._webhook_tasks:
            return
        pending = set(self._webhook_tasks)
        _done, still_pending = await asyncio.wait(pending, timeout=timeout_seconds)
        for task in still_pending:
            task.cancel()
        for task in still_pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if still_pending:
            logger.warning("dropped %s webhook deliveries on shutdown", len(still_pending))
