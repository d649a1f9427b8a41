from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta

from incident_relay.core.constants import DEFAULT_IDLE_THRESHOLD_SECONDS, DEFAULT_REAP_INTERVAL_SECONDS
from incident_relay.orchestration.session_manager import Clock, SessionManager, utc_now
from incident_relay.orchestration.summary_store import SummaryStore

logger = logging.getLogger(__name__)


class InactivityReaper:
    """Periodically clears summaries whose system has been quiet past the threshold."""

    def __init__(
        self,
        session_manager: SessionManager,
        store: SummaryStore,
        *,
        idle_threshold_seconds: float = DEFAULT_IDLE_THRESHOLD_SECONDS,
        interval_seconds: float = DEFAULT_REAP_INTERVAL_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        self.session_manager = session_manager
        self.store = store
        self.idle_threshold = timedelta(seconds=idle_threshold_seconds)
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def scan_once(self) -> list[str]:
        """Run one pass; return the keys that were cleared."""
        now = self.clock()
        cleared: list[str] = []
        for state in self.store.list_all():
            if state.is_empty or now - state.last_activity_at <= self.idle_threshold:
                continue
            try:
                if await self.session_manager.clear_if_idle(
                    state.system_key,
                    now=now,
                    idle_threshold=self.idle_threshold,
                ):
                    cleared.append(state.system_key)
            except Exception:
                # One bad record must not stall the others; the next scan retries it.
                logger.exception("failed to clear idle summary", extra={"system_key": state.system_key})
        return cleared

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            cleared = await self.scan_once()
            if cleared:
                logger.info("reaper cleared %s idle summaries", len(cleared), extra={"systems": ",".join(cleared)})

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run_loop())
            logger.info(
                "inactivity reaper started threshold=%ss interval=%ss",
                int(self.idle_threshold.total_seconds()),
                self.interval_seconds,
            )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("inactivity reaper stopped")
