from __future__ import annotations

from fastapi import Request

from incident_relay.core.errors import NotReadyError
from incident_relay.orchestration.engine import Engine


def get_engine(request: Request) -> Engine:
    engine: Engine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise NotReadyError("Summary engine is not running.")
    return engine


def get_optional_engine(request: Request) -> Engine | None:
    return getattr(request.app.state, "engine", None)
