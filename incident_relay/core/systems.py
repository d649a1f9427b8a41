"""Static registry of configured systems (tenants) and their prompt templates."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from incident_relay.core.config import SystemConfig
from incident_relay.core.constants import SUMMARY_PLACEHOLDER, TRANSCRIPTION_PLACEHOLDER
from incident_relay.core.errors import ConfigurationError, UnknownSystemError


@dataclass(frozen=True)
class System:
    key: str
    initial_prompt: str
    update_prompt: str

    def render_initial(self, transcription: str) -> str:
        return self.initial_prompt.replace(TRANSCRIPTION_PLACEHOLDER, transcription)

    def render_update(self, summary: str, transcription: str) -> str:
        # Summary first: "{summary}" inside the transcript stays literal, but
        # "{transcription}" inside the summary is replaced too.
        return self.update_prompt.replace(SUMMARY_PLACEHOLDER, summary).replace(
            TRANSCRIPTION_PLACEHOLDER, transcription
        )

    def render(self, summary: str, transcription: str) -> str:
        """Pick the initial template for an empty summary, the update template otherwise."""
        if not summary:
            return self.render_initial(transcription)
        return self.render_update(summary, transcription)


class SystemRegistry(Mapping[str, System]):
    """Read-only key -> System mapping, built once at startup."""

    def __init__(self, systems: Iterable[System]) -> None:
        by_key: dict[str, System] = {}
        for system in systems:
            if not system.key:
                raise ConfigurationError("System key must not be empty.")
            if system.key in by_key:
                raise ConfigurationError(f"Duplicate system key: {system.key!r}.")
            by_key[system.key] = system
        if not by_key:
            raise ConfigurationError("No systems configured.")
        self._systems = MappingProxyType(by_key)

    @classmethod
    def from_config(cls, systems: Iterable[SystemConfig]) -> SystemRegistry:
        return cls(
            System(
                key=item.key.strip(),
                initial_prompt=item.initial_prompt,
                update_prompt=item.update_prompt,
            )
            for item in systems
        )

    def get_system(self, key: str) -> System:
        try:
            return self._systems[key]
        except KeyError:
            raise UnknownSystemError(key) from None

    def __getitem__(self, key: str) -> System:
        return self._systems[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._systems)

    def __len__(self) -> int:
        return len(self._systems)
