from __future__ import annotations

import abc
import asyncio
import logging
from collections.abc import Awaitable, Callable

from incident_relay.core.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE_SECONDS = 1.0


class ProviderClient(abc.ABC):
    """Sends one prompt to a completion backend and returns the generated text."""

    name: str = "provider"

    @abc.abstractmethod
    async def complete(self, prompt: str, model: str) -> str:
        """Return the completion text or raise ProviderError."""

    async def aclose(self) -> None:
        return None


def compute_backoff_seconds(base: float, attempt: int) -> float:
    return base * (2 ** max(attempt - 1, 0))


def require_text(content: object, *, provider: str) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ProviderError(f"{provider} returned an empty completion.", transient=False)
    return content.strip()


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class RetryingProvider(ProviderClient):
    """
    Retry transient failures of a wrapped provider with exponential backoff.

    Each attempt is bounded by ``timeout_seconds``; hitting the bound counts as
    a transient failure. Permanent failures are raised on first sight.
    """

    def __init__(
        self,
        inner: ProviderClient,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS,
        timeout_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.inner = inner
        self.name = inner.name
        self.max_attempts = max(1, max_attempts)
        self.backoff_base_seconds = backoff_base_seconds
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep

    async def _attempt(self, prompt: str, model: str) -> str:
        if self.timeout_seconds is None:
            return await self.inner.complete(prompt, model)
        try:
            return await asyncio.wait_for(self.inner.complete(prompt, model), timeout=self.timeout_seconds)
        except TimeoutError as exc:
            raise ProviderError(
                f"{self.name} did not answer within {self.timeout_seconds:.0f}s.",
                transient=True,
            ) from exc

    async def complete(self, prompt: str, model: str) -> str:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._attempt(prompt, model)
            except ProviderError as exc:
                if not exc.transient or attempt >= self.max_attempts:
                    raise
                backoff_seconds = compute_backoff_seconds(self.backoff_base_seconds, attempt)
                logger.warning(
                    "provider call failed, retrying attempt=%s backoff=%.2fs error=%s",
                    attempt,
                    backoff_seconds,
                    exc.detail,
                    extra={"provider": self.name},
                )
                await self._sleep(backoff_seconds)
        raise AssertionError("unreachable")

    async def aclose(self) -> None:
        await self.inner.aclose()
