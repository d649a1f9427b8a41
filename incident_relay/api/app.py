from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from incident_relay import __version__
from incident_relay.api.routers import meta_router, systems_router, uploads_router
from incident_relay.core.config import Settings, get_settings
from incident_relay.core.errors import AppError
from incident_relay.core.handlers import handle_app_error, handle_validation_error
from incident_relay.core.lifespan import lifespan
from incident_relay.core.middleware import log_requests
from incident_relay.orchestration.engine import Engine


def create_app(settings: Settings | None = None, *, engine: Engine | None = None) -> FastAPI:
    """
    Application factory for creating FastAPI instances.

    Args:
        settings: Optional settings override. If None, loads from environment.
        engine: Optional pre-built engine. When given, the lifespan starts it
                instead of reading the config file and connecting to Postgres.
    """
    if settings is None:
        settings = get_settings()

    middleware: list[Middleware] = []
    if settings.cors_allow_origins:
        middleware.append(
            Middleware(
                CORSMiddleware,
                allow_origins=settings.cors_allow_origins,
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )
        )

    app = FastAPI(
        title="Incident Relay",
        description="Rolling incident summaries from short audio reports",
        version=__version__,
        middleware=middleware,
        lifespan=lifespan,
    )
    app.include_router(meta_router)
    app.include_router(uploads_router)
    app.include_router(systems_router)
    app.state.settings = settings
    app.state.engine = engine

    app.add_middleware(BaseHTTPMiddleware, dispatch=log_requests)
    app.add_exception_handler(AppError, handle_app_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]

    return app
