"""Domain events — typed records of things that happened in the domain.

Events are handed to the event-log sink *after* a dispatch completes so that
auditing never sits on the primary response path.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Base class for all domain events."""

    event_type: str = "DOMAIN_EVENT"
    occurred_at: datetime = field(default_factory=_utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        """Event-specific fields, without the envelope attributes."""
        data = asdict(self)
        for key in ("event_type", "occurred_at", "metadata"):
            data.pop(key, None)
        return data


# ── AI provider events ───────────────────────────────────────
@dataclass(frozen=True, slots=True)
class ProviderServedEvent(DomainEvent):
    event_type: str = "AI_PROVIDER_SERVED"
    provider: str = ""
    model_name: str = ""
    reason: str = ""
    attempts: int = 1
    failed_providers: tuple[str, ...] = ()
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    latency_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class ProvidersExhaustedEvent(DomainEvent):
    event_type: str = "AI_PROVIDERS_EXHAUSTED"
    reason: str = ""
    failures: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class ProviderUnavailableEvent(DomainEvent):
    event_type: str = "AI_PROVIDER_UNAVAILABLE"
    reason: str = ""
    candidates: tuple[str, ...] = ()
