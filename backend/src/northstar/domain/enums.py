"""Domain enumerations for the AI routing layer."""

from __future__ import annotations

import enum


class ProviderId(str, enum.Enum):
    """Opaque provider identities used instead of vendor names.

    Declaration order is the fixed fallback order appended after the
    primary candidate of every routing decision.
    """

    REASONING = "reasoning"
    NARRATIVE = "narrative"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: str | ProviderId | None) -> ProviderId | None:
        """Return the matching identity, or ``None`` for unknown values."""
        if value is None or isinstance(value, ProviderId):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Pillar(str, enum.Enum):
    """Wellness pillars used as domain/agent tags."""

    SLEEP = "sleep"
    FITNESS = "fitness"
    MENTAL_HEALTH = "mental-health"
    NUTRITION = "nutrition"
    FINANCES = "finances"
    PHYSICAL_HEALTH = "physical-health"
    SOCIAL = "social"
    SPIRITUALITY = "spirituality"


class Sentiment(str, enum.Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class CrisisType(str, enum.Enum):
    """Crisis categories recognised by the safety check."""

    SUICIDE = "suicide"
    SELF_HARM = "self_harm"
    SEVERE_CRISIS = "severe_crisis"
    ABUSE = "abuse"
    SUBSTANCE = "substance"
    ERROR = "error"


class CrisisSeverity(str, enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    NONE = "none"
