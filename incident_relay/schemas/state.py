from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True)
class SummaryState:
    """Per-system rolling summary. Instances are immutable snapshots."""

    system_key: str
    summary_text: str
    last_activity_at: datetime
    version: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.summary_text

    def advanced(self, summary_text: str, *, now: datetime) -> SummaryState:
        return replace(self, summary_text=summary_text, last_activity_at=now, version=self.version + 1)

    def cleared(self) -> SummaryState:
        # Clearing is not activity: timestamp and version are kept.
        return replace(self, summary_text="")
