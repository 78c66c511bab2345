"""AI provider routing and resilience layer.

Provides routing policy, ranked fallback dispatch, circuit breaking,
health tracking and result annotation for the text-generation providers.
"""

from northstar.shared.providers.types import (
    AnnotatedResponse,
    CallerContext,
    ProviderAttempt,
    ProviderHealth,
    ProviderStatus,
    RawProviderResult,
    RequestEnvelope,
    ResponseEnvelope,
    RoutingDecision,
)
from northstar.shared.providers.annotator import Redactor, ResultAnnotator
from northstar.shared.providers.circuit_breaker import CircuitBreaker, CircuitState
from northstar.shared.providers.health import ProviderHealthTracker
from northstar.shared.providers.policy import RoutingPolicy
from northstar.shared.providers.registry import ProviderRegistry
from northstar.shared.providers.dispatcher import FallbackDispatcher

__all__ = [
    "AnnotatedResponse",
    "CallerContext",
    "CircuitBreaker",
    "CircuitState",
    "FallbackDispatcher",
    "ProviderAttempt",
    "ProviderHealth",
    "ProviderHealthTracker",
    "ProviderRegistry",
    "ProviderStatus",
    "RawProviderResult",
    "Redactor",
    "RequestEnvelope",
    "ResponseEnvelope",
    "ResultAnnotator",
    "RoutingDecision",
    "RoutingPolicy",
]
