"""Per-provider circuit breaker.

State machine:
    CLOSED    → (N consecutive failures) → OPEN
    OPEN      → (cooldown expires)       → HALF_OPEN
    HALF_OPEN → (probe succeeds)         → CLOSED
    HALF_OPEN → (probe fails)            → OPEN

The dispatcher skips a provider whose circuit is OPEN without making a
network call, which counts as that provider's single attempt.
"""

from __future__ import annotations

import enum
import threading
import time

import structlog

from northstar.domain.enums import ProviderId

logger = structlog.get_logger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_COOLDOWN_SECONDS = 120.0


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Thread-safe circuit breaker with a single half-open probe."""

    def __init__(
        self,
        provider_id: ProviderId,
        *,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self._provider_id = provider_id
        self._failure_threshold = failure_threshold
        self._cooldown = cooldown_seconds

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._probe_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    @property
    def retry_in_seconds(self) -> float:
        """Seconds until an open circuit admits a probe (0 when not open)."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                return 0.0
            return max(0.0, self._cooldown - (time.monotonic() - self._opened_at))

    def can_execute(self) -> bool:
        """Whether a request may go through right now."""
        with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN and not self._probe_in_flight:
                self._probe_in_flight = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            previous = self._state
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._probe_in_flight = False
        if previous != CircuitState.CLOSED:
            logger.info(
                "circuit_breaker_closed",
                provider=self._provider_id.value,
                previous_state=previous.value,
            )

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._probe_in_flight = False
            if self._state == CircuitState.HALF_OPEN:
                self._open()
                event = "circuit_breaker_reopened"
            elif (
                self._state == CircuitState.CLOSED
                and self._consecutive_failures >= self._failure_threshold
            ):
                self._open()
                event = "circuit_breaker_opened"
            else:
                return
            failures = self._consecutive_failures
        logger.warning(
            event,
            provider=self._provider_id.value,
            failures=failures,
            cooldown_s=self._cooldown,
        )

    def release(self) -> None:
        """Free a half-open probe slot without recording an outcome."""
        with self._lock:
            self._probe_in_flight = False

    def reset(self) -> None:
        """Force the circuit CLOSED (admin override)."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._probe_in_flight = False
        logger.info("circuit_breaker_force_reset", provider=self._provider_id.value)

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()

    def _maybe_half_open(self) -> None:
        """Caller must hold the lock."""
        if self._state == CircuitState.OPEN and time.monotonic() - self._opened_at >= self._cooldown:
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = False
