"""Core types for the AI provider routing and resilience layer.

Every provider consumes a ``RequestEnvelope`` and every successful call is
normalised into a ``ResponseEnvelope`` so callers never branch on provider
identity.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from northstar.domain.enums import ProviderId
from northstar.domain.exceptions import ValidationError


class ProviderStatus(str, enum.Enum):
    """Health status of an AI provider."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    CIRCUIT_OPEN = "circuit_open"
    UNCONFIGURED = "unconfigured"


@dataclass(frozen=True)
class RequestEnvelope:
    """Normalised request built once by a caller, consumed by one provider call.

    Attributes:
        system_prompt:  Instructions for the model.
        user_prompt:    The user-facing message or task body.
        context_string: Optional context blob appended to the system prompt.
        max_tokens:     Generation cap.
        temperature:    Sampling temperature (0–2).
        model_override: Model name that replaces the provider default.
    """

    system_prompt: str
    user_prompt: str
    context_string: str | None = None
    max_tokens: int = 1024
    temperature: float = 0.7
    model_override: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.system_prompt, str) or not isinstance(self.user_prompt, str):
            raise ValidationError("system_prompt and user_prompt must be strings")
        if not self.user_prompt.strip():
            raise ValidationError("user_prompt must not be empty")
        if self.max_tokens <= 0:
            raise ValidationError("max_tokens must be positive")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValidationError("temperature must be between 0 and 2")

    @property
    def context_size(self) -> int:
        return len(self.context_string or "")

    def full_system_prompt(self) -> str:
        """System prompt with the context blob appended, if any."""
        if self.context_string:
            return f"{self.system_prompt}\n\n{self.context_string}"
        return self.system_prompt


@dataclass(frozen=True)
class RawProviderResult:
    """What a provider client hands back before provider stamping."""

    text: str
    model_name: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


@dataclass(frozen=True)
class ResponseEnvelope:
    """Normalised result of exactly one successful provider call."""

    text: str
    provider_used: ProviderId
    model_name: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None

    @classmethod
    def from_raw(cls, provider_id: ProviderId, raw: RawProviderResult) -> ResponseEnvelope:
        return cls(
            text=raw.text,
            provider_used=provider_id,
            model_name=raw.model_name,
            prompt_tokens=raw.prompt_tokens,
            completion_tokens=raw.completion_tokens,
        )

    @property
    def total_tokens(self) -> int | None:
        if self.prompt_tokens is None and self.completion_tokens is None:
            return None
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)


@dataclass(frozen=True)
class CallerContext:
    """Selection signals supplied by a caller alongside the task type."""

    explicit_override: ProviderId | str | None = None
    domain_tag: str | None = None
    context_size: int = 0

    @classmethod
    def for_envelope(
        cls,
        envelope: RequestEnvelope,
        *,
        explicit_override: ProviderId | str | None = None,
        domain_tag: str | None = None,
    ) -> CallerContext:
        return cls(
            explicit_override=explicit_override,
            domain_tag=domain_tag,
            context_size=envelope.context_size,
        )


@dataclass(frozen=True)
class RoutingDecision:
    """Ranked, justified list of providers to attempt.

    Contains only identifiers and a human-readable reason, so it is safe
    to log verbatim.
    """

    ranked_candidates: tuple[ProviderId, ...]
    reason: str

    @property
    def primary(self) -> ProviderId | None:
        return self.ranked_candidates[0] if self.ranked_candidates else None

    @property
    def exhausted(self) -> bool:
        return not self.ranked_candidates

    def to_dict(self) -> dict[str, Any]:
        return {
            "ranked_candidates": [p.value for p in self.ranked_candidates],
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ProviderAttempt:
    """One failed provider attempt with a sanitized reason."""

    provider_id: ProviderId
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"provider": self.provider_id.value, "reason": self.reason}


@dataclass(frozen=True)
class AnnotatedResponse:
    """Response plus the observability annotation of how it was served."""

    response: ResponseEnvelope
    decision: RoutingDecision
    reason: str
    attempts: tuple[ProviderAttempt, ...] = ()
    latency_ms: float = 0.0

    @property
    def text(self) -> str:
        return self.response.text

    @property
    def provider_used(self) -> ProviderId:
        return self.response.provider_used

    @property
    def fell_back(self) -> bool:
        return bool(self.attempts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.response.provider_used.value,
            "model": self.response.model_name,
            "reason": self.reason,
            "fallback_from": [a.provider_id.value for a in self.attempts],
            "prompt_tokens": self.response.prompt_tokens,
            "completion_tokens": self.response.completion_tokens,
            "latency_ms": self.latency_ms,
        }


@dataclass
class ProviderHealth:
    """Read-only snapshot of a provider's current health."""

    provider_id: str
    configured: bool = True
    status: ProviderStatus = ProviderStatus.HEALTHY
    model_name: str = ""
    total_requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_failures: int = 0
    success_rate: float = 1.0
    latency_p50_ms: float = 0.0
    latency_p95_ms: float = 0.0
    latency_p99_ms: float = 0.0
    last_error: str | None = None
    last_error_time: float | None = None
    circuit_state: str = "closed"
    extra: dict[str, Any] = field(default_factory=dict)
