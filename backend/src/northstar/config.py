"""NorthStar AI service — application configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from northstar.domain.enums import ProviderId


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "northstar-ai"
    app_env: Environment = Environment.DEVELOPMENT
    app_debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Providers ────────────────────────────────────────────
    # Each provider holds at most one credential; the legacy vendor-named
    # variables are accepted as fallbacks.
    reasoning_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("reasoning_api_key", "openai_api_key"),
    )
    reasoning_model: str = "gpt-4o-mini"
    reasoning_base_url: str = "https://api.openai.com/v1"

    narrative_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("narrative_api_key", "anthropic_api_key"),
    )
    narrative_model: str = "claude-3-5-sonnet-20241022"
    narrative_base_url: str = "https://api.anthropic.com/v1"

    general_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("general_api_key", "gemini_api_key"),
    )
    general_model: str = "gemini-1.5-flash"
    general_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # ── Routing & resilience ─────────────────────────────────
    provider_timeout_seconds: float = Field(default=25.0, ge=1.0, le=120.0)
    large_context_threshold: int = Field(default=2000, gt=0)
    # JSON object of domain tag -> provider id, merged over the built-in table
    routing_domain_preferences: dict[str, str] = Field(default_factory=dict)

    circuit_breaker_failure_threshold: int = Field(default=5, ge=1)
    circuit_breaker_cooldown_seconds: float = Field(default=120.0, gt=0)

    # ── Observability ────────────────────────────────────────
    prometheus_enabled: bool = True

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("reasoning_api_key", "narrative_api_key", "general_api_key", mode="before")
    @classmethod
    def _blank_key_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("routing_domain_preferences")
    @classmethod
    def _validate_domain_preferences(cls, v: dict[str, str]) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        for domain, provider in v.items():
            pid = ProviderId.parse(provider)
            if pid is None:
                raise ValueError(f"unknown provider {provider!r} for domain {domain!r}")
            cleaned[domain.strip().lower()] = pid.value
        return cleaned


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
