"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects — they adapt between
the external world and the domain.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from northstar.domain.enums import Pillar


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    providers: dict[str, bool] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Sentiment & insights
# ═══════════════════════════════════════════════════════════════
class SentimentRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=10_000)


class SentimentResponse(BaseModel):
    sentiment: str
    score: int = Field(..., ge=0, le=100)


class InsightsRequest(BaseModel):
    context: str = Field(..., min_length=1, max_length=10_000)
    count: int = Field(3, ge=1, le=10)


class InsightsResponse(BaseModel):
    insights: list[str]


# ═══════════════════════════════════════════════════════════════
#  Crisis
# ═══════════════════════════════════════════════════════════════
class CrisisCheckRequest(BaseModel):
    message: str = Field(..., max_length=10_000)
    country: str = Field("us", min_length=2, max_length=2)


class CrisisResourceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    number: str
    url: str
    description: str


class CrisisCheckResponse(BaseModel):
    is_crisis: bool
    severity: str
    type: str | None = None
    message: str | None = None
    method: str
    confidence: int | None = None
    resources: list[CrisisResourceOut] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════
#  Screening
# ═══════════════════════════════════════════════════════════════
class ScreeningFollowUpRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    pillar: Pillar
    score: int = Field(..., ge=0)
    max_score: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=200)
    recommendation: str = Field(..., min_length=1, max_length=1000)


class FollowUpResponse(BaseModel):
    text: str
    model: str
    provider: str | None = None
    fallback: bool = False


# ═══════════════════════════════════════════════════════════════
#  Coaching
# ═══════════════════════════════════════════════════════════════
class CoachRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=8_000)
    pillar: Pillar | None = None
    context: str | None = Field(None, max_length=20_000)
    provider: str | None = Field(None, description="Optional provider override")


class CoachResponse(BaseModel):
    text: str
    provider: str | None = None
    degraded: bool = False
    reason: str | None = None


# ═══════════════════════════════════════════════════════════════
#  Provider health (admin)
# ═══════════════════════════════════════════════════════════════
class ProviderHealthResponse(BaseModel):
    provider_id: str
    configured: bool
    model: str
    status: str
    circuit_state: str
    total_requests: int
    total_successes: int
    total_failures: int
    consecutive_failures: int
    success_rate: float
    latency_p50_ms: float
    latency_p95_ms: float
    latency_p99_ms: float
    last_error: str | None = None


class ProviderResetResponse(BaseModel):
    status: str = "reset"
    provider_id: str
