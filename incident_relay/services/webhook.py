from __future__ import annotations

import logging

import httpx

from incident_relay.core.config import WebhookConfig
from incident_relay.core.constants import SUMMARY_PLACEHOLDER
from incident_relay.core.errors import DeliveryError
from incident_relay.core.logging import log_context

logger = logging.getLogger(__name__)


def render_payload(template: str, summary: str) -> str:
    """Raw placeholder substitution; escaping is the template author's job."""
    return template.replace(SUMMARY_PLACEHOLDER, summary)


class WebhookDispatcher:
    """Fire-and-forget POST of the latest summary to the operator's endpoint."""

    def __init__(
        self,
        config: WebhookConfig,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.url = config.url
        self.template = config.template
        self.headers = {"Content-Type": "application/json", **config.headers}
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def _post(self, payload: str) -> None:
        try:
            response = await self.client.post(self.url, content=payload.encode("utf-8"), headers=self.headers)
        except httpx.TimeoutException as exc:
            raise DeliveryError("Webhook timed out.") from exc
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Webhook request failed: {exc}") from exc

        if not response.is_success:
            raise DeliveryError(f"Webhook returned HTTP {response.status_code}.")

    async def dispatch(self, system_key: str, summary_text: str) -> bool:
        """Deliver once. Failures are logged and reported as False, never raised."""
        with log_context(system_key=system_key):
            if not self.enabled:
                logger.debug("webhook disabled, skipping delivery")
                return True

            try:
                await self._post(render_payload(self.template, summary_text))
            except DeliveryError as exc:
                logger.warning("webhook delivery failed: %s", exc.detail, extra={"error_code": exc.code})
                return False

            logger.info("webhook delivered")
            return True

    async def aclose(self) -> None:
        await self.client.aclose()
