from __future__ import annotations

from typing import Any

import httpx

from incident_relay.core.errors import ProviderError
from incident_relay.services.providers.base import ProviderClient, is_transient_status, require_text

OLLAMA_CHAT_PATH = "/api/chat"


class OllamaProvider(ProviderClient):
    """Ollama's native chat API: no auth, non-streaming ``/api/chat`` requests."""

    name = "ollama"

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    @classmethod
    def create(cls, *, base_url: str) -> OllamaProvider:
        # No client-side timeout; RetryingProvider bounds each attempt.
        return cls(httpx.AsyncClient(base_url=base_url, timeout=None))

    async def complete(self, prompt: str, model: str) -> str:
        body = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
        }
        try:
            response = await self.client.post(OLLAMA_CHAT_PATH, json=body)
        except httpx.TransportError as exc:
            raise ProviderError(f"Failed to reach {self.name}.", transient=True) from exc

        if response.status_code >= 400:
            raise ProviderError(
                f"{self.name} returned HTTP {response.status_code}.",
                transient=is_transient_status(response.status_code),
                status_code=response.status_code,
            )

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} returned invalid JSON.", transient=False) from exc

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return require_text(content, provider=self.name)

    async def aclose(self) -> None:
        await self.client.aclose()
