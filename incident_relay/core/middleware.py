from __future__ import annotations

import logging
import time
import uuid
from collections import deque

from fastapi import Request
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from incident_relay.core.errors import AppError, RateLimitError, RequestTooLargeError
from incident_relay.core.handlers import error_response
from incident_relay.core.logging import log_context

logger = logging.getLogger(__name__)
RATE_LIMIT_MAX_IPS = 10_000
RATE_LIMIT_IDLE_SECONDS = 1800  # 30 minutes
_rate_limit_buckets: dict[str, deque[float]] = {}
_rate_limit_last_seen: dict[str, float] = {}


def _check_request_size(request: Request, max_bytes: int) -> None:
    if max_bytes <= 0:
        return
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_bytes:
        raise RequestTooLargeError("Request body too large.")


def _evict_stale_buckets(now: float) -> None:
    # _rate_limit_last_seen is kept in least-recently-seen order.
    while _rate_limit_last_seen:
        ip, last = next(iter(_rate_limit_last_seen.items()))
        if now - last <= RATE_LIMIT_IDLE_SECONDS and len(_rate_limit_buckets) < RATE_LIMIT_MAX_IPS:
            break
        del _rate_limit_last_seen[ip]
        _rate_limit_buckets.pop(ip, None)


def _check_rate_limit(request: Request, limit: int, window_seconds: int) -> None:
    if limit <= 0:
        return
    forwarded_for = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    client_host = request.client.host if request.client else ""
    ip = forwarded_for or client_host or "unknown"
    now = time.monotonic()
    if ip not in _rate_limit_buckets:
        _evict_stale_buckets(now)
    bucket = _rate_limit_buckets.setdefault(ip, deque())
    _rate_limit_last_seen.pop(ip, None)
    _rate_limit_last_seen[ip] = now
    while bucket and now - bucket[0] > max(window_seconds, 1):
        bucket.popleft()
    if len(bucket) >= limit:
        raise RateLimitError("Too many requests.")
    bucket.append(now)


async def log_requests(request: Request, call_next: RequestResponseEndpoint) -> Response:
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
    request.state.request_id = request_id
    settings = request.app.state.settings

    with log_context(request_id=request_id):
        try:
            _check_request_size(request, settings.max_request_bytes)
            _check_rate_limit(request, settings.rate_limit_requests, settings.rate_limit_window_seconds)
        except AppError as exc:
            # Exception handlers do not see errors raised in middleware.
            response = error_response(exc.status_code, exc.code, exc.detail)
        else:
            response = await call_next(request)

        response.headers["X-Request-Id"] = request_id
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %s %.2fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
