from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from incident_relay.core.errors import AppError, ProviderError
from incident_relay.core.logging import log_context

logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _error_fields(exc: AppError) -> dict[str, object]:
    fields: dict[str, object] = {
        "error_code": exc.code,
        "status_code": exc.status_code,
        "error_type": type(exc).__name__,
    }
    cause = exc.__cause__
    if isinstance(cause, ProviderError):
        fields["transient"] = cause.transient
        if cause.upstream_status is not None:
            fields["upstream_status"] = cause.upstream_status
    return fields


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    # Client errors are logged where they are raised; only server-side failures land here.
    if exc.status_code >= 500:
        request_id = getattr(request.state, "request_id", None)
        with log_context(request_id=request_id, method=request.method, path=request.url.path):
            logger.error("%s", exc.detail, extra=_error_fields(exc))
    return error_response(exc.status_code, exc.code, exc.detail)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    missing = sorted({str(error["loc"][-1]) for error in exc.errors() if error.get("type") == "missing"})
    request_id = getattr(request.state, "request_id", None)
    with log_context(request_id=request_id, method=request.method, path=request.url.path):
        logger.warning("Invalid request", extra={"error_code": "invalid_request", "missing": ",".join(missing)})
    message = f"Missing field(s): {', '.join(missing)}" if missing else "Invalid request"
    return error_response(400, "invalid_request", message)
