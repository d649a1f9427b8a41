"""Chat-completions providers built on the OpenAI SDK (OpenAI, OpenRouter, Azure, local servers)."""

from __future__ import annotations

from typing import Any

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AsyncAzureOpenAI,
    AsyncOpenAI,
)

from incident_relay.core.errors import ProviderError
from incident_relay.services.providers.base import ProviderClient, is_transient_status, require_text

# Completions are summaries of summaries; keep them steady.
SUMMARY_TEMPERATURE = 0.2


def translate_openai_error(exc: APIError, provider: str) -> ProviderError:
    """Map SDK exceptions onto transient/permanent ProviderErrors."""
    if isinstance(exc, APIConnectionError):  # includes APITimeoutError
        return ProviderError(f"Failed to reach {provider}.", transient=True)
    if isinstance(exc, APIStatusError):
        return ProviderError(
            f"{provider} returned HTTP {exc.status_code}.",
            transient=is_transient_status(exc.status_code),
            status_code=exc.status_code,
        )
    return ProviderError(f"{provider} returned an invalid response.", transient=False)


def build_openai_client(
    *,
    api_key: str,
    base_url: str,
    default_headers: dict[str, str] | None = None,
) -> AsyncOpenAI:
    # Retries and timeouts are owned by RetryingProvider.
    return AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        default_headers=default_headers or None,
        max_retries=0,
    )


class OpenAIProvider(ProviderClient):
    """Bearer-auth ``/chat/completions`` backend."""

    name = "openai"

    def __init__(self, client: AsyncOpenAI) -> None:
        self.client = client

    @classmethod
    def create(cls, *, api_key: str, base_url: str) -> OpenAIProvider:
        return cls(build_openai_client(api_key=api_key, base_url=base_url))

    def _messages(self, prompt: str) -> list[dict[str, Any]]:
        return [{"role": "user", "content": prompt}]

    async def complete(self, prompt: str, model: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=self._messages(prompt),  # type: ignore[arg-type]
                temperature=SUMMARY_TEMPERATURE,
            )
        except APIError as exc:
            raise translate_openai_error(exc, self.name) from exc

        content: Any = response.choices[0].message.content if response.choices else None
        return require_text(content, provider=self.name)

    async def aclose(self) -> None:
        await self.client.close()


class OpenRouterProvider(OpenAIProvider):
    """OpenAI request shape against OpenRouter, with its attribution headers."""

    name = "openrouter"

    @classmethod
    def create_for_openrouter(
        cls,
        *,
        api_key: str,
        base_url: str,
        site_url: str | None,
        app_name: str | None,
    ) -> OpenRouterProvider:
        headers: dict[str, str] = {}
        if site_url:
            headers["HTTP-Referer"] = site_url
        if app_name:
            headers["X-Title"] = app_name
        return cls(build_openai_client(api_key=api_key, base_url=base_url, default_headers=headers))


class AzureOpenAIProvider(OpenAIProvider):
    """``api-key`` header and a deployment-scoped URL."""

    name = "azure"

    @classmethod
    def create_for_azure(
        cls,
        *,
        api_key: str,
        endpoint: str,
        deployment: str,
        api_version: str,
    ) -> AzureOpenAIProvider:
        return cls(
            AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=endpoint,
                azure_deployment=deployment,
                api_version=api_version,
                max_retries=0,
            )
        )


class LocalOpenAIProvider(OpenAIProvider):
    """OpenAI-compatible server on the local network (llama.cpp, vLLM, ...)."""

    name = "local"
