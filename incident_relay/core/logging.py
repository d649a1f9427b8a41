from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

APP_LOGGER_PREFIX = "incident_relay"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else is treated as context.
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "level_color", "reset", "color_message"}

# Context survives awaits and is copied into tasks created inside the scope.
_LOG_CONTEXT: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)

# Third-party loggers are clamped to these levels regardless of LOG_LEVEL.
_THIRD_PARTY_LEVELS: dict[str, int] = {
    "uvicorn": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "groq": logging.WARNING,
    "asyncpg": logging.WARNING,
}


class ContextInjectionFilter(logging.Filter):
    """Copies the active log_context() fields onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in (_LOG_CONTEXT.get() or {}).items():
            if key not in _RESERVED_RECORD_ATTRS and not hasattr(record, key):
                setattr(record, key, value)
        return True


class ThirdPartyLevelFilter(logging.Filter):
    """Drop chatter from libraries below their configured threshold."""

    def __init__(self, levels: Mapping[str, int]) -> None:
        super().__init__()
        self.levels = dict(levels)

    def _threshold(self, name: str) -> int | None:
        if name == "__main__" or name == APP_LOGGER_PREFIX or name.startswith(f"{APP_LOGGER_PREFIX}."):
            return None
        best: tuple[int, int] | None = None
        for prefix, level in self.levels.items():
            if name == prefix or name.startswith(prefix + "."):
                if best is None or len(prefix) > best[0]:
                    best = (len(prefix), level)
        return best[1] if best else logging.WARNING

    def filter(self, record: logging.LogRecord) -> bool:
        threshold = self._threshold(record.name)
        return threshold is None or record.levelno >= threshold


class SmartContextFormatter(logging.Formatter):
    """Formatter that appends all extra fields as key=value context."""

    def format(self, record: logging.LogRecord) -> str:
        base_message = super().format(record)
        extra_fields = {key: value for key, value in record.__dict__.items() if key not in _RESERVED_RECORD_ATTRS}
        if not extra_fields:
            return base_message
        context_str = " ".join(f"{key}={value}" for key, value in extra_fields.items())
        return f"{base_message} [{context_str}]"


class ColorFormatter(SmartContextFormatter):
    _RESET = "\x1b[0m"
    _LEVEL_COLORS = {
        "DEBUG": "\x1b[36m",
        "INFO": "\x1b[32m",
        "WARNING": "\x1b[33m",
        "ERROR": "\x1b[31m",
        "CRITICAL": "\x1b[1;31m",
    }

    def format(self, record: logging.LogRecord) -> str:
        record.level_color = self._LEVEL_COLORS.get(record.levelname, "")  # type: ignore[attr-defined]
        record.reset = self._RESET  # type: ignore[attr-defined]
        return super().format(record)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Temporarily attach context fields to all log lines in this scope."""

    current = _LOG_CONTEXT.get() or {}
    token = _LOG_CONTEXT.set({**current, **kwargs})
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


def get_log_context() -> Mapping[str, Any]:
    return _LOG_CONTEXT.get() or {}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def setup_logging(*, log_level: str | None = None) -> None:
    """
    Configure global, context-aware logging for the service.

    Environment variables:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    - LOG_COLOR: enable ANSI colors (default: auto when TTY)
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper().strip()
    root_level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.captureWarnings(True)

    handler = logging.StreamHandler(sys.stdout)
    formatter: logging.Formatter
    if _env_flag("LOG_COLOR", sys.stdout.isatty()):
        formatter = ColorFormatter(
            "%(level_color)s%(asctime)s | %(levelname)s%(reset)s | %(name)s | "
            "%(filename)s:%(lineno)d | %(level_color)s%(message)s%(reset)s",
            datefmt=DEFAULT_DATE_FORMAT,
        )
    else:
        formatter = SmartContextFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s",
            datefmt=DEFAULT_DATE_FORMAT,
        )
    handler.setFormatter(formatter)
    handler.addFilter(ContextInjectionFilter())
    handler.addFilter(ThirdPartyLevelFilter(_THIRD_PARTY_LEVELS))
    root_logger.addHandler(handler)
    root_logger.setLevel(root_level)

    logging.getLogger(APP_LOGGER_PREFIX).setLevel(root_level)
    for name, level in _THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"log_level": logging.getLevelName(root_level)},
    )
