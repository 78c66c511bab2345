"""Domain value objects — immutable, self-validating types.

Value objects have *no identity*; two instances with equal fields are equal.
They clamp or reject out-of-range values at construction time so callers can
hand model-produced numbers straight in without re-checking.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from northstar.domain.enums import CrisisSeverity, CrisisType, ProviderId, Sentiment
from northstar.domain.exceptions import ValidationError


def clamp_score(value: object, *, default: int, low: int = 0, high: int = 100) -> int:
    """Coerce a model-produced number into ``[low, high]``.

    Anything that is not a finite number (including booleans) yields *default*.
    """
    if isinstance(value, bool):
        return default
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return max(low, min(high, round(number)))


# ═══════════════════════════════════════════════════════════════
#  Sentiment
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class SentimentResult:
    sentiment: Sentiment = Sentiment.NEUTRAL
    score: int = 50

    def __post_init__(self) -> None:
        label = self.sentiment
        if not isinstance(label, Sentiment):
            try:
                label = Sentiment(str(label).strip().lower())
            except ValueError:
                label = Sentiment.NEUTRAL
        object.__setattr__(self, "sentiment", label)
        object.__setattr__(self, "score", clamp_score(self.score, default=50))

    def to_dict(self) -> dict[str, object]:
        return {"sentiment": self.sentiment.value, "score": self.score}


# ═══════════════════════════════════════════════════════════════
#  Crisis
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class CrisisAssessment:
    """Model-based crisis judgement.

    ``method`` is ``"ai"`` for a parsed model answer and ``"fallback"`` when
    no judgement could be obtained, so "uncertain" is distinguishable from
    "assessed as not in crisis".
    """

    is_crisis: bool
    confidence: int
    recommendation: str
    method: str = "ai"
    crisis_type: CrisisType | None = None

    def __post_init__(self) -> None:
        crisis_type = self.crisis_type
        if crisis_type is not None and not isinstance(crisis_type, CrisisType):
            try:
                crisis_type = CrisisType(str(crisis_type).strip().lower())
            except ValueError:
                crisis_type = None
        if crisis_type is CrisisType.ERROR:
            crisis_type = None
        object.__setattr__(self, "crisis_type", crisis_type)
        object.__setattr__(self, "is_crisis", self.is_crisis is True)
        object.__setattr__(self, "confidence", clamp_score(self.confidence, default=0))
        object.__setattr__(self, "recommendation", str(self.recommendation or "").strip())

    @property
    def is_fallback(self) -> bool:
        return self.method == "fallback"


@dataclass(frozen=True, slots=True)
class CrisisResource:
    name: str
    number: str
    url: str
    description: str


@dataclass(frozen=True, slots=True)
class CrisisCheckResult:
    """Outcome of the full safety check (keyword pre-screen, then model)."""

    is_crisis: bool
    severity: CrisisSeverity = CrisisSeverity.NONE
    type: CrisisType | None = None
    message: str | None = None
    method: str = "pattern"
    resources: tuple[CrisisResource, ...] = ()
    confidence: int | None = None


# ═══════════════════════════════════════════════════════════════
#  Screening
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class ScreeningSummary:
    """A scored questionnaire result, as produced by the screening engine."""

    name: str
    pillar: str
    score: int
    max_score: int
    category: str
    recommendation: str

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValidationError("screening name must not be empty")
        if self.max_score <= 0:
            raise ValidationError("max_score must be positive")
        if not 0 <= self.score <= self.max_score:
            raise ValidationError(f"score must be between 0 and {self.max_score}")

    @property
    def percentile(self) -> int:
        return round(self.score / self.max_score * 100)


@dataclass(frozen=True, slots=True)
class FollowUp:
    text: str
    model: str
    provider: ProviderId | None = None

    @property
    def is_fallback(self) -> bool:
        return self.model == "fallback"


# ═══════════════════════════════════════════════════════════════
#  Coaching
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class CoachingReply:
    text: str
    provider: ProviderId | None = None
    degraded: bool = False
    reason: str | None = None
