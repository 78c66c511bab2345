"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.  Messages are
built only from identifiers and already-sanitized reason strings; nothing in
this module ever receives a credential.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from northstar.shared.providers.types import ProviderAttempt


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


class RoutingConfigurationError(DomainError):
    """Static routing tables failed validation at startup."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="ROUTING_CONFIGURATION_ERROR")


# ── AI providers ─────────────────────────────────────────────
class AIError(DomainError):
    """Base for AI routing and provider errors."""


class NoProviderConfiguredError(AIError):
    """No candidate of a routing decision has a credential."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"No AI provider is configured (routing: {reason})",
            code="AI_PROVIDER_NOT_CONFIGURED",
        )


class ProviderCallFailedError(AIError):
    """A single provider invocation failed; triggers fallback."""

    def __init__(self, provider_id: str, reason: str) -> None:
        self.provider_id = provider_id
        self.reason = reason
        super().__init__(f"[{provider_id}] {reason}", code="AI_PROVIDER_CALL_FAILED")


class AllProvidersFailedError(AIError):
    """Every configured candidate failed."""

    def __init__(self, attempts: Sequence[ProviderAttempt]) -> None:
        self.attempts = tuple(attempts)
        summary = "; ".join(f"{a.provider_id.value}: {a.reason}" for a in self.attempts)
        super().__init__(
            f"All AI providers failed ({summary})",
            code="AI_PROVIDERS_EXHAUSTED",
        )


class MalformedStructuredOutputError(AIError):
    """Provider text did not contain the expected JSON structure."""

    def __init__(self, message: str = "No parseable JSON found in provider output") -> None:
        super().__init__(message, code="AI_MALFORMED_OUTPUT")
