"""Fallback dispatcher — the single entry-point for AI provider calls.

Walks a ``RoutingDecision`` in order, pruned to configured providers, and
invokes each candidate at most once until one succeeds.  Calls are strictly
sequential so a logical request never has two billable calls in flight.

Failures of individual providers are recorded (sanitized) and never
surfaced; callers see either one ``ResponseEnvelope`` or one of the two
terminal errors ``NoProviderConfiguredError`` / ``AllProvidersFailedError``.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog

from northstar.domain.enums import ProviderId
from northstar.domain.events import (
    DomainEvent,
    ProvidersExhaustedEvent,
    ProviderServedEvent,
    ProviderUnavailableEvent,
)
from northstar.domain.exceptions import (
    AllProvidersFailedError,
    NoProviderConfiguredError,
    ProviderCallFailedError,
    ValidationError,
)
from northstar.ports.outbound import EventLogPort, ProviderClient
from northstar.shared.observability.metrics import (
    DISPATCH_OUTCOMES,
    PROVIDER_INVOCATIONS,
    PROVIDER_LATENCY,
)
from northstar.shared.providers.annotator import ResultAnnotator
from northstar.shared.providers.circuit_breaker import (
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_FAILURE_THRESHOLD,
    CircuitBreaker,
)
from northstar.shared.providers.health import ProviderHealthTracker
from northstar.shared.providers.policy import RoutingPolicy
from northstar.shared.providers.registry import ProviderRegistry
from northstar.shared.providers.types import (
    AnnotatedResponse,
    CallerContext,
    ProviderAttempt,
    ProviderHealth,
    ProviderStatus,
    RequestEnvelope,
    ResponseEnvelope,
    RoutingDecision,
)

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 25.0


class FallbackDispatcher:
    """Ranked, bounded fallback across provider clients.

    Usage::

        dispatcher = FallbackDispatcher(registry, policy=RoutingPolicy())
        result = await dispatcher.route_and_dispatch(envelope, "counsel",
                                                     CallerContext(domain_tag="sleep"))
        result.text, result.provider_used, result.reason
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        policy: RoutingPolicy | None = None,
        annotator: ResultAnnotator | None = None,
        event_log: EventLogPort | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_SECONDS,
        cb_failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cb_cooldown_s: float = DEFAULT_COOLDOWN_SECONDS,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._registry = registry
        self._policy = policy or RoutingPolicy()
        self._annotator = annotator or ResultAnnotator(registry.redactor)
        self._redactor = self._annotator.redactor
        self._event_log = event_log
        self._timeout = timeout_s
        self._pending: set[asyncio.Task[None]] = set()

        self._breakers: dict[ProviderId, CircuitBreaker] = {}
        self._trackers: dict[ProviderId, ProviderHealthTracker] = {}
        for client in registry:
            pid = client.provider_id
            self._breakers[pid] = CircuitBreaker(
                pid,
                failure_threshold=cb_failure_threshold,
                cooldown_seconds=cb_cooldown_s,
            )
            self._trackers[pid] = ProviderHealthTracker(pid)

    @property
    def policy(self) -> RoutingPolicy:
        return self._policy

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    # ── Main entry-points ────────────────────────────────────
    async def dispatch(self, envelope: RequestEnvelope, decision: RoutingDecision) -> ResponseEnvelope:
        """Serve *envelope* from the first working candidate of *decision*.

        Raises:
            NoProviderConfiguredError: no candidate has a credential; raised
                before any network call.
            AllProvidersFailedError: every configured candidate failed.
        """
        response, _attempts = await self._walk(envelope, decision)
        return response

    async def route_and_dispatch(
        self,
        envelope: RequestEnvelope,
        task_type: str,
        context: CallerContext | None = None,
    ) -> AnnotatedResponse:
        """Decide, dispatch and annotate in one call."""
        context = context or CallerContext.for_envelope(envelope)
        decision = self._policy.decide(task_type, context)
        logger.info("routing_decided", task_type=task_type, **decision.to_dict())

        start = time.monotonic()
        response, attempts = await self._walk(envelope, decision)
        return self._annotator.annotate(
            response,
            decision,
            attempts,
            latency_ms=(time.monotonic() - start) * 1000,
        )

    # ── Candidate walk ───────────────────────────────────────
    async def _walk(
        self, envelope: RequestEnvelope, decision: RoutingDecision
    ) -> tuple[ResponseEnvelope, tuple[ProviderAttempt, ...]]:
        candidates = [
            (pid, client)
            for pid in dict.fromkeys(decision.ranked_candidates)
            if (client := self._registry.get(pid)) is not None and client.is_configured()
        ]
        if not candidates:
            DISPATCH_OUTCOMES.labels(outcome="unconfigured").inc()
            logger.error(
                "no_provider_configured",
                reason=decision.reason,
                candidates=[p.value for p in decision.ranked_candidates],
            )
            self._emit(
                ProviderUnavailableEvent(
                    reason=decision.reason,
                    candidates=tuple(p.value for p in decision.ranked_candidates),
                    metadata=_request_metadata(),
                )
            )
            raise NoProviderConfiguredError(decision.reason)

        attempts: list[ProviderAttempt] = []
        start = time.monotonic()

        for pid, client in candidates:
            breaker = self._breakers[pid]
            if not breaker.can_execute():
                attempts.append(ProviderAttempt(pid, "circuit open"))
                PROVIDER_INVOCATIONS.labels(provider=pid.value, status="skipped").inc()
                logger.warning(
                    "provider_circuit_open",
                    provider=pid.value,
                    retry_in_s=round(breaker.retry_in_seconds, 1),
                )
                continue

            response, reason = await self._attempt(
                pid, client, envelope, breaker, attempt=len(attempts) + 1
            )
            if response is not None:
                if attempts:
                    logger.info(
                        "provider_failover_success",
                        provider=pid.value,
                        attempts=len(attempts) + 1,
                        failed_providers=[a.provider_id.value for a in attempts],
                    )
                DISPATCH_OUTCOMES.labels(outcome="fallback" if attempts else "primary").inc()
                self._emit(
                    ProviderServedEvent(
                        provider=pid.value,
                        model_name=response.model_name,
                        reason=decision.reason,
                        attempts=len(attempts) + 1,
                        failed_providers=tuple(a.provider_id.value for a in attempts),
                        prompt_tokens=response.prompt_tokens,
                        completion_tokens=response.completion_tokens,
                        latency_ms=round((time.monotonic() - start) * 1000, 1),
                        metadata=_request_metadata(),
                    )
                )
                return response, tuple(attempts)
            attempts.append(ProviderAttempt(pid, reason))

        DISPATCH_OUTCOMES.labels(outcome="exhausted").inc()
        logger.error(
            "all_providers_failed",
            reason=decision.reason,
            failures=[a.to_dict() for a in attempts],
        )
        self._emit(
            ProvidersExhaustedEvent(
                reason=decision.reason,
                failures=tuple((a.provider_id.value, a.reason) for a in attempts),
                metadata=_request_metadata(),
            )
        )
        raise AllProvidersFailedError(attempts)

    async def _attempt(
        self,
        pid: ProviderId,
        client: ProviderClient,
        envelope: RequestEnvelope,
        breaker: CircuitBreaker,
        *,
        attempt: int,
    ) -> tuple[ResponseEnvelope | None, str]:
        """Invoke one provider once.  Returns ``(response, "")`` or ``(None, reason)``."""
        tracker = self._trackers[pid]
        log = logger.bind(provider=pid.value, attempt=attempt)

        start = time.monotonic()
        try:
            raw = await asyncio.wait_for(client.invoke(envelope), timeout=self._timeout)
            if not raw.text.strip():
                raise ProviderCallFailedError(pid.value, "empty response text")
        except asyncio.CancelledError:
            # The caller went away; release a half-open probe slot without judging the provider.
            breaker.release()
            raise
        except asyncio.TimeoutError:
            reason = f"timed out after {self._timeout:g}s"
        except ProviderCallFailedError as exc:
            reason = self._redactor.redact(exc.reason)
        except Exception as exc:
            reason = self._redactor.redact(f"unexpected {type(exc).__name__}: {exc}")
        else:
            latency_ms = (time.monotonic() - start) * 1000
            tracker.record_success(latency_ms)
            breaker.record_success()
            PROVIDER_INVOCATIONS.labels(provider=pid.value, status="success").inc()
            PROVIDER_LATENCY.labels(provider=pid.value).observe(latency_ms / 1000)
            log.info(
                "provider_request_success",
                model=raw.model_name,
                latency_ms=round(latency_ms, 1),
            )
            return ResponseEnvelope.from_raw(pid, raw), ""

        latency_ms = (time.monotonic() - start) * 1000
        tracker.record_failure(reason, latency_ms)
        breaker.record_failure()
        PROVIDER_INVOCATIONS.labels(provider=pid.value, status="failure").inc()
        PROVIDER_LATENCY.labels(provider=pid.value).observe(latency_ms / 1000)
        log.warning("provider_request_failed", reason=reason, latency_ms=round(latency_ms, 1))
        return None, reason

    # ── Audit (fire-and-forget) ──────────────────────────────
    def _emit(self, event: DomainEvent) -> None:
        if self._event_log is None:
            return
        task = asyncio.get_running_loop().create_task(self._append(self._event_log, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _append(self, event_log: EventLogPort, event: DomainEvent) -> None:
        metadata = {**event.metadata, "occurred_at": event.occurred_at.isoformat()}
        try:
            await event_log.append(event.event_type, event.payload(), metadata)
        except Exception as exc:
            logger.warning(
                "audit_append_failed",
                event_type=event.event_type,
                error=self._redactor.redact(f"{type(exc).__name__}: {exc}"),
            )

    async def drain(self) -> None:
        """Wait for in-flight audit writes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── Health observation ───────────────────────────────────
    def get_health(self, provider_id: ProviderId | str) -> ProviderHealth | None:
        pid = ProviderId.parse(provider_id)
        if pid is None or pid not in self._trackers:
            return None
        client = self._registry.get(pid)
        health = self._trackers[pid].health
        health.configured = client is not None and client.is_configured()
        health.model_name = client.model_name if client else ""
        health.circuit_state = self._breakers[pid].state.value
        if not health.configured:
            health.status = ProviderStatus.UNCONFIGURED
        elif health.circuit_state == "open":
            health.status = ProviderStatus.CIRCUIT_OPEN
        return health

    def get_all_health(self) -> list[ProviderHealth]:
        results: list[ProviderHealth] = []
        for pid in self._trackers:
            health = self.get_health(pid)
            if health is not None:
                results.append(health)
        return results

    def reset_provider(self, provider_id: ProviderId | str) -> None:
        """Admin reset — closes the provider's circuit."""
        pid = ProviderId.parse(provider_id)
        if pid is None or pid not in self._breakers:
            raise ValidationError(f"Unknown provider: {provider_id}")
        self._breakers[pid].reset()
        logger.info("provider_admin_reset", provider=pid.value)


def _request_metadata() -> dict[str, Any]:
    request_id = structlog.contextvars.get_contextvars().get("request_id")
    return {"request_id": request_id} if request_id else {}
