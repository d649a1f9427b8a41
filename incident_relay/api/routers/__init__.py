"""API routers."""

from incident_relay.api.routers.meta import router as meta_router
from incident_relay.api.routers.systems import router as systems_router
from incident_relay.api.routers.uploads import router as uploads_router

__all__ = ["meta_router", "systems_router", "uploads_router"]
