"""Application settings loaded from environment variables and the TOML config file."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from incident_relay.core.constants import (
    DEFAULT_IDLE_THRESHOLD_SECONDS,
    DEFAULT_REAP_INTERVAL_SECONDS,
    DEFAULT_WEBHOOK_TEMPLATE,
    DEFAULT_WHISPER_MODEL,
)
from incident_relay.core.errors import ConfigurationError

ProviderKind = Literal["openai", "openrouter", "azure", "ollama", "local"]


class Settings(BaseSettings):
    """
    Configuration loaded from environment variables.

    Only secrets and deployment-specific values belong here.
    Systems, prompts and endpoints live in the TOML config file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------------------------------------------------------------------------
    # Config file + storage
    # ---------------------------------------------------------------------------
    config_file: str = Field(default="config.toml", validation_alias="CONFIG_FILE")
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

    # ---------------------------------------------------------------------------
    # API Keys
    # ---------------------------------------------------------------------------
    provider_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("PROVIDER_API_KEY", "OPENAI_API_KEY"),
    )
    groq_api_key: str | None = Field(default=None, validation_alias="GROQ_API_KEY")

    # ---------------------------------------------------------------------------
    # Deployment config (optional)
    # ---------------------------------------------------------------------------
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias="CORS_ALLOW_ORIGINS"
    )
    rate_limit_requests: int = Field(default=0, validation_alias="RATE_LIMIT_REQUESTS")  # 0 = disabled
    rate_limit_window_seconds: int = Field(default=60, validation_alias="RATE_LIMIT_WINDOW_SECONDS")
    max_request_bytes: int = Field(default=25 * 1024 * 1024, validation_alias="MAX_REQUEST_BYTES")

    # ---------------------------------------------------------------------------
    # Outbound calls
    # ---------------------------------------------------------------------------
    provider_timeout_seconds: float = Field(default=60.0, validation_alias="PROVIDER_TIMEOUT_SECONDS")
    provider_max_attempts: int = Field(default=3, validation_alias="PROVIDER_MAX_ATTEMPTS")
    provider_backoff_base_seconds: float = Field(default=1.0, validation_alias="PROVIDER_BACKOFF_BASE_SECONDS")
    webhook_timeout_seconds: float = Field(default=10.0, validation_alias="WEBHOOK_TIMEOUT_SECONDS")

    @field_validator("config_file", mode="before")
    @classmethod
    def _strip_path(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("database_url", "provider_api_key", "groq_api_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _parse_list(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",")]
            return [item for item in items if item]
        return value

    @field_validator("provider_max_attempts")
    @classmethod
    def _clamp_attempts(cls, value: int) -> int:
        return max(1, value)

    @field_validator("provider_timeout_seconds", "webhook_timeout_seconds")
    @classmethod
    def _clamp_timeout(cls, value: float) -> float:
        return max(1.0, value)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# ---------------------------------------------------------------------------
# TOML config file
# ---------------------------------------------------------------------------
class ProviderConfig(BaseModel):
    kind: ProviderKind = "openai"
    url: str | None = None
    model: str
    api_version: str | None = None
    deployment: str | None = None
    site_url: str | None = None
    app_name: str | None = None

    @field_validator("model")
    @classmethod
    def _require_model(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("provider model must not be empty")
        return value.strip()


class WebhookConfig(BaseModel):
    url: str = ""
    template: str = DEFAULT_WEBHOOK_TEMPLATE
    headers: dict[str, str] = Field(default_factory=dict)


class SystemConfig(BaseModel):
    key: str
    initial_prompt: str
    update_prompt: str


class AppConfig(BaseModel):
    provider: ProviderConfig
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    database_url: str | None = None
    idle_threshold_seconds: float = Field(default=DEFAULT_IDLE_THRESHOLD_SECONDS, gt=0)
    reap_interval_seconds: float = Field(default=DEFAULT_REAP_INTERVAL_SECONDS, gt=0)
    whisper_model: str = DEFAULT_WHISPER_MODEL
    systems: list[SystemConfig]

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_layout(cls, data: Any) -> Any:
        """Map the flat ``openai_*``/``webhook_*`` keys onto the nested blocks."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        if "provider" not in data and ("openai_api_url" in data or "openai_model" in data):
            url = data.pop("openai_api_url", None)
            data["provider"] = {
                "kind": _infer_provider_kind(url),
                "url": url,
                "model": data.pop("openai_model", ""),
            }
        if "webhook" not in data and ("webhook_url" in data or "webhook_template" in data):
            webhook: dict[str, Any] = {"url": data.pop("webhook_url", "")}
            if "webhook_template" in data:
                webhook["template"] = data.pop("webhook_template")
            data["webhook"] = webhook
        # The audio model path is meaningless for a hosted transcriber.
        data.pop("whisper_model_path", None)
        return data

    @field_validator("systems")
    @classmethod
    def _require_systems(cls, value: list[SystemConfig]) -> list[SystemConfig]:
        if not value:
            raise ValueError("at least one [[systems]] entry is required")
        return value


def _infer_provider_kind(url: str | None) -> ProviderKind:
    if not url:
        return "openai"
    if "openrouter.ai" in url:
        return "openrouter"
    if ".openai.azure.com" in url:
        return "azure"
    return "openai"


def parse_app_config(text: str, *, source: str = "<config>") -> AppConfig:
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {source}: {exc}") from exc

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config in {source}: {exc}") from exc


def load_app_config(path: str | Path) -> AppConfig:
    """Read and validate the TOML config file. Any failure is fatal at startup."""
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Failed to read config file {config_path}: {exc}") from exc

    return parse_app_config(text, source=str(config_path))
