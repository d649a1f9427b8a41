"""Write-through cache of per-system summary state over a durable repository."""

from __future__ import annotations

import logging
from typing import Protocol

from incident_relay.schemas.state import SummaryState

logger = logging.getLogger(__name__)


class SummaryRepository(Protocol):
    async def fetch_all(self) -> list[SummaryState]: ...

    async def upsert(self, state: SummaryState) -> None: ...

    async def clear(self, system_key: str) -> None: ...


class SummaryStore:
    """
    Owns every SummaryState record.

    Reads are served from memory. Writes go to the repository first and only
    reach the cache once the durable write has returned, so a failed write
    leaves both copies at the previous state. Callers serialize writes per
    key (see SessionManager); writes for different keys never share state.
    """

    def __init__(self, repository: SummaryRepository) -> None:
        self.repository = repository
        self._states: dict[str, SummaryState] = {}

    async def rehydrate(self) -> int:
        """Replace the cache with whatever the repository holds."""
        states = await self.repository.fetch_all()
        self._states = {state.system_key: state for state in states}
        logger.info("summary store rehydrated", extra={"systems": len(self._states)})
        return len(self._states)

    def load(self, system_key: str) -> SummaryState | None:
        return self._states.get(system_key)

    async def upsert(self, state: SummaryState) -> None:
        await self.repository.upsert(state)
        self._states[state.system_key] = state

    async def clear(self, system_key: str) -> SummaryState | None:
        current = self._states.get(system_key)
        if current is None:
            return None
        await self.repository.clear(system_key)
        cleared = current.cleared()
        self._states[system_key] = cleared
        return cleared

    def list_all(self) -> list[SummaryState]:
        return list(self._states.values())
