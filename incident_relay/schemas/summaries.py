from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from incident_relay.schemas.state import SummaryState


class SummaryResponse(BaseModel):
    system_key: str
    summary: str
    version: int
    last_activity_at: datetime

    @classmethod
    def from_state(cls, state: SummaryState) -> SummaryResponse:
        return cls(
            system_key=state.system_key,
            summary=state.summary_text,
            version=state.version,
            last_activity_at=state.last_activity_at,
        )


class SystemsResponse(BaseModel):
    systems: list[str]
