"""Dependency injection container — wires adapters to ports.

FastAPI's ``Depends()`` system uses these factories to inject the routing
layer and the specialized AI callers into route handlers.  The provider
registry and dispatcher are process-wide singletons built on first use;
tests swap them with ``configure_container()`` / ``reset_container()``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from northstar.adapters.outbound.event_log import StructlogEventLog
from northstar.adapters.outbound.llm import build_provider_clients
from northstar.application.services import (
    CoachingService,
    CrisisService,
    InsightsService,
    ScreeningFollowUpService,
    SentimentService,
)
from northstar.config import Settings, get_settings
from northstar.ports.outbound import EventLogPort
from northstar.shared.providers import FallbackDispatcher, ProviderRegistry, RoutingPolicy
from northstar.shared.providers.policy import DEFAULT_DOMAIN_PREFERENCES


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Singletons ───────────────────────────────────────────────
_settings: Settings | None = None
_registry: ProviderRegistry | None = None
_event_log: EventLogPort | None = None
_dispatcher: FallbackDispatcher | None = None


def get_current_settings() -> Settings:
    return _settings or get_cached_settings()


def configure_container(
    *,
    settings: Settings | None = None,
    registry: ProviderRegistry | None = None,
    event_log: EventLogPort | None = None,
) -> None:
    """Pre-seed the container (app factory and tests).  Drops the dispatcher."""
    global _settings, _registry, _event_log, _dispatcher
    if settings is not None:
        _settings = settings
    if registry is not None:
        _registry = registry
    if event_log is not None:
        _event_log = event_log
    _dispatcher = None


def reset_container() -> None:
    """Forget every singleton.  Does not close clients; see ``shutdown_container``."""
    global _settings, _registry, _event_log, _dispatcher
    _settings = _registry = _event_log = _dispatcher = None
    get_cached_settings.cache_clear()


async def shutdown_container() -> None:
    """Flush pending audit writes and release pooled provider connections."""
    if _dispatcher is not None:
        await _dispatcher.drain()
    if _registry is not None:
        await _registry.aclose()


def get_registry() -> ProviderRegistry:
    global _registry
    if _registry is None:
        _registry = ProviderRegistry(build_provider_clients(get_current_settings()))
    return _registry


def get_event_log() -> EventLogPort:
    global _event_log
    if _event_log is None:
        _event_log = StructlogEventLog()
    return _event_log


def build_routing_policy(settings: Settings) -> RoutingPolicy:
    """Built-in domain table with any ``ROUTING_DOMAIN_PREFERENCES`` entries on top."""
    return RoutingPolicy(
        domain_preferences={**DEFAULT_DOMAIN_PREFERENCES, **settings.routing_domain_preferences},
        large_context_threshold=settings.large_context_threshold,
    )


def get_dispatcher() -> FallbackDispatcher:
    global _dispatcher
    if _dispatcher is None:
        s = get_current_settings()
        _dispatcher = FallbackDispatcher(
            get_registry(),
            policy=build_routing_policy(s),
            event_log=get_event_log(),
            timeout_s=s.provider_timeout_seconds,
            cb_failure_threshold=s.circuit_breaker_failure_threshold,
            cb_cooldown_s=s.circuit_breaker_cooldown_seconds,
        )
    return _dispatcher


# ── Specialized caller factories ─────────────────────────────
def get_sentiment_service(
    dispatcher: FallbackDispatcher = Depends(get_dispatcher),
) -> SentimentService:
    return SentimentService(dispatcher)


def get_insights_service(
    dispatcher: FallbackDispatcher = Depends(get_dispatcher),
) -> InsightsService:
    return InsightsService(dispatcher)


def get_crisis_service(
    dispatcher: FallbackDispatcher = Depends(get_dispatcher),
) -> CrisisService:
    return CrisisService(dispatcher)


def get_screening_service(
    dispatcher: FallbackDispatcher = Depends(get_dispatcher),
) -> ScreeningFollowUpService:
    return ScreeningFollowUpService(dispatcher)


def get_coaching_service(
    dispatcher: FallbackDispatcher = Depends(get_dispatcher),
) -> CoachingService:
    return CoachingService(dispatcher)
