"""Health, AI callers, Provider health — REST routers."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from northstar.application.dtos import (
    CoachRequest,
    CoachResponse,
    CrisisCheckRequest,
    CrisisCheckResponse,
    CrisisResourceOut,
    ErrorResponse,
    FollowUpResponse,
    HealthResponse,
    InsightsRequest,
    InsightsResponse,
    ProviderHealthResponse,
    ProviderResetResponse,
    ScreeningFollowUpRequest,
    SentimentRequest,
    SentimentResponse,
)
from northstar.application.services import (
    CoachingService,
    CrisisService,
    InsightsService,
    ScreeningFollowUpService,
    SentimentService,
)
from northstar.dependencies import (
    get_coaching_service,
    get_crisis_service,
    get_current_settings,
    get_dispatcher,
    get_insights_service,
    get_registry,
    get_screening_service,
    get_sentiment_service,
)
from northstar.domain.value_objects import ScreeningSummary
from northstar.shared.providers import FallbackDispatcher, ProviderRegistry


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(registry: ProviderRegistry = Depends(get_registry)) -> HealthResponse:
    settings = get_current_settings()
    providers = {client.provider_id.value: client.is_configured() for client in registry}
    return HealthResponse(
        status="ok" if any(providers.values()) else "degraded",
        environment=settings.app_env.value,
        providers=providers,
    )


# ═══════════════════════════════════════════════════════════════
#  Metrics
# ═══════════════════════════════════════════════════════════════
metrics_router = APIRouter(tags=["Health"])


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ═══════════════════════════════════════════════════════════════
#  AI callers
# ═══════════════════════════════════════════════════════════════
ai_router = APIRouter(prefix="/ai", tags=["AI"])


@ai_router.post("/sentiment", response_model=SentimentResponse)
async def analyze_sentiment(
    body: SentimentRequest,
    service: SentimentService = Depends(get_sentiment_service),
) -> SentimentResponse:
    result = await service.analyze_sentiment(body.text)
    return SentimentResponse(sentiment=result.sentiment.value, score=result.score)


@ai_router.post("/insights", response_model=InsightsResponse)
async def generate_insights(
    body: InsightsRequest,
    service: InsightsService = Depends(get_insights_service),
) -> InsightsResponse:
    return InsightsResponse(insights=await service.generate_insights(body.context, body.count))


@ai_router.post("/crisis-check", response_model=CrisisCheckResponse)
async def crisis_check(
    body: CrisisCheckRequest,
    service: CrisisService = Depends(get_crisis_service),
) -> CrisisCheckResponse:
    result = await service.perform_crisis_check(body.message, body.country)
    return CrisisCheckResponse(
        is_crisis=result.is_crisis,
        severity=result.severity.value,
        type=result.type.value if result.type else None,
        message=result.message,
        method=result.method,
        confidence=result.confidence,
        resources=[CrisisResourceOut.model_validate(r) for r in result.resources],
    )


@ai_router.post(
    "/screening-follow-up",
    response_model=FollowUpResponse,
    responses={422: {"model": ErrorResponse}},
)
async def screening_follow_up(
    body: ScreeningFollowUpRequest,
    service: ScreeningFollowUpService = Depends(get_screening_service),
) -> FollowUpResponse:
    summary = ScreeningSummary(
        name=body.name,
        pillar=body.pillar.value,
        score=body.score,
        max_score=body.max_score,
        category=body.category,
        recommendation=body.recommendation,
    )
    follow_up = await service.generate_screening_follow_up(summary)
    return FollowUpResponse(
        text=follow_up.text,
        model=follow_up.model,
        provider=follow_up.provider.value if follow_up.provider else None,
        fallback=follow_up.is_fallback,
    )


@ai_router.post("/coach", response_model=CoachResponse)
async def coach(
    body: CoachRequest,
    service: CoachingService = Depends(get_coaching_service),
) -> CoachResponse:
    reply = await service.coach_reply(
        body.message,
        body.pillar,
        body.context,
        provider=body.provider,
    )
    return CoachResponse(
        text=reply.text,
        provider=reply.provider.value if reply.provider else None,
        degraded=reply.degraded,
        reason=reply.reason,
    )


# ═══════════════════════════════════════════════════════════════
#  Provider Health (Admin)
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Provider Health"])


@providers_router.get("/health", response_model=list[ProviderHealthResponse])
async def provider_health(
    dispatcher: FallbackDispatcher = Depends(get_dispatcher),
) -> list[ProviderHealthResponse]:
    """Health snapshots for every provider, configured or not."""
    return [
        ProviderHealthResponse(
            provider_id=h.provider_id,
            configured=h.configured,
            model=h.model_name,
            status=h.status.value,
            circuit_state=h.circuit_state,
            total_requests=h.total_requests,
            total_successes=h.total_successes,
            total_failures=h.total_failures,
            consecutive_failures=h.consecutive_failures,
            success_rate=h.success_rate,
            latency_p50_ms=h.latency_p50_ms,
            latency_p95_ms=h.latency_p95_ms,
            latency_p99_ms=h.latency_p99_ms,
            last_error=h.last_error,
        )
        for h in dispatcher.get_all_health()
    ]


@providers_router.post(
    "/{provider_id}/reset",
    response_model=ProviderResetResponse,
    responses={422: {"model": ErrorResponse}},
)
async def reset_provider(
    provider_id: str,
    dispatcher: FallbackDispatcher = Depends(get_dispatcher),
) -> ProviderResetResponse:
    """Close a provider's circuit breaker."""
    dispatcher.reset_provider(provider_id)
    return ProviderResetResponse(provider_id=provider_id.strip().lower())
