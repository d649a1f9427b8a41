"""Completion providers, selected once from configuration."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from incident_relay.core.config import ProviderConfig, Settings
from incident_relay.core.constants import (
    AZURE_DEFAULT_API_VERSION,
    CHAT_COMPLETIONS_SUFFIX,
    LOCAL_BASE_URL,
    OLLAMA_BASE_URL,
    OPENAI_BASE_URL,
    OPENROUTER_BASE_URL,
)
from incident_relay.core.errors import ConfigurationError
from incident_relay.services.providers.base import ProviderClient, RetryingProvider
from incident_relay.services.providers.ollama import OllamaProvider
from incident_relay.services.providers.openai_compat import (
    AzureOpenAIProvider,
    LocalOpenAIProvider,
    OpenAIProvider,
    OpenRouterProvider,
)

__all__ = [
    "AzureOpenAIProvider",
    "LocalOpenAIProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "ProviderClient",
    "RetryingProvider",
    "build_provider",
    "create_provider",
]


def _strip_suffix(url: str, *suffixes: str) -> str:
    url = url.rstrip("/")
    for suffix in suffixes:
        if url.endswith(suffix):
            return url[: -len(suffix)]
    return url


def _require_key(api_key: str | None, kind: str) -> str:
    if not api_key:
        raise ConfigurationError(f"PROVIDER_API_KEY is required for the {kind} provider.")
    return api_key


def _split_azure_url(config: ProviderConfig) -> tuple[str, str, str]:
    """Return (endpoint, deployment, api_version) from a full or bare Azure URL."""
    if not config.url:
        raise ConfigurationError("Azure provider requires a url.")

    parts = urlsplit(config.url)
    endpoint = f"{parts.scheme}://{parts.netloc}"
    deployment = config.deployment
    segments = [segment for segment in parts.path.split("/") if segment]
    if "deployments" in segments:
        index = segments.index("deployments")
        if index + 1 < len(segments):
            deployment = deployment or segments[index + 1]
    api_version = config.api_version or parse_qs(parts.query).get("api-version", [None])[0]

    if not deployment:
        raise ConfigurationError("Azure provider requires a deployment.")
    return endpoint, deployment, api_version or AZURE_DEFAULT_API_VERSION


def build_provider(config: ProviderConfig, api_key: str | None) -> ProviderClient:
    """Instantiate the bare variant for ``config.kind``."""
    if config.kind == "openai":
        base_url = _strip_suffix(config.url or OPENAI_BASE_URL, CHAT_COMPLETIONS_SUFFIX)
        return OpenAIProvider.create(api_key=_require_key(api_key, config.kind), base_url=base_url)

    if config.kind == "openrouter":
        base_url = _strip_suffix(config.url or OPENROUTER_BASE_URL, CHAT_COMPLETIONS_SUFFIX)
        return OpenRouterProvider.create_for_openrouter(
            api_key=_require_key(api_key, config.kind),
            base_url=base_url,
            site_url=config.site_url,
            app_name=config.app_name,
        )

    if config.kind == "azure":
        endpoint, deployment, api_version = _split_azure_url(config)
        return AzureOpenAIProvider.create_for_azure(
            api_key=_require_key(api_key, config.kind),
            endpoint=endpoint,
            deployment=deployment,
            api_version=api_version,
        )

    if config.kind == "ollama":
        base_url = _strip_suffix(config.url or OLLAMA_BASE_URL, "/api/chat", "/v1" + CHAT_COMPLETIONS_SUFFIX, "/v1")
        return OllamaProvider.create(base_url=base_url)

    if config.kind == "local":
        base_url = _strip_suffix(config.url or LOCAL_BASE_URL, CHAT_COMPLETIONS_SUFFIX)
        # Local servers ignore the key, but the SDK insists on one.
        return LocalOpenAIProvider.create(api_key=api_key or "local", base_url=base_url)

    raise ConfigurationError(f"Unsupported provider kind: {config.kind!r}.")


def create_provider(config: ProviderConfig, settings: Settings) -> ProviderClient:
    return RetryingProvider(
        build_provider(config, settings.provider_api_key),
        max_attempts=settings.provider_max_attempts,
        backoff_base_seconds=settings.provider_backoff_base_seconds,
        timeout_seconds=settings.provider_timeout_seconds,
    )
