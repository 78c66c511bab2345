"""Sliding-window health tracker for a single provider.

Keeps rolling success/failure counts and latency percentiles over a time
window.  Error strings recorded here must already be sanitized; they are
served verbatim by the provider health endpoint.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass

from northstar.domain.enums import ProviderId
from northstar.shared.providers.types import ProviderHealth, ProviderStatus


@dataclass
class _Sample:
    timestamp: float
    success: bool
    latency_ms: float


class ProviderHealthTracker:
    """Thread-safe, sliding-window health tracker."""

    def __init__(
        self,
        provider_id: ProviderId,
        *,
        window_seconds: float = 300.0,
        degraded_threshold: float = 0.30,
        unhealthy_threshold: float = 0.60,
    ) -> None:
        self._provider_id = provider_id
        self._window = window_seconds
        self._degraded_thr = degraded_threshold
        self._unhealthy_thr = unhealthy_threshold

        self._samples: deque[_Sample] = deque()
        self._lock = threading.Lock()

        # Cumulative counters, never evicted
        self._total_requests = 0
        self._total_successes = 0
        self._total_failures = 0
        self._consecutive_failures = 0
        self._last_error: str | None = None
        self._last_error_time: float | None = None

    # ── Recording ────────────────────────────────────────────
    def record_success(self, latency_ms: float) -> None:
        with self._lock:
            self._samples.append(_Sample(time.monotonic(), True, latency_ms))
            self._total_requests += 1
            self._total_successes += 1
            self._consecutive_failures = 0
            self._evict()

    def record_failure(self, error: str, latency_ms: float = 0.0) -> None:
        with self._lock:
            self._samples.append(_Sample(time.monotonic(), False, latency_ms))
            self._total_requests += 1
            self._total_failures += 1
            self._consecutive_failures += 1
            self._last_error = error
            self._last_error_time = time.time()
            self._evict()

    # ── Status derivation ────────────────────────────────────
    @property
    def status(self) -> ProviderStatus:
        with self._lock:
            self._evict()
            return self._status_locked()

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def health(self) -> ProviderHealth:
        """Read-only snapshot."""
        with self._lock:
            self._evict()
            window_total = len(self._samples)
            window_failures = sum(1 for s in self._samples if not s.success)
            latencies = sorted(s.latency_ms for s in self._samples if s.latency_ms > 0)
            status = self._status_locked()
        success_rate = (window_total - window_failures) / window_total if window_total else 1.0
        return ProviderHealth(
            provider_id=self._provider_id.value,
            status=status,
            total_requests=self._total_requests,
            total_successes=self._total_successes,
            total_failures=self._total_failures,
            consecutive_failures=self._consecutive_failures,
            success_rate=round(success_rate, 4),
            latency_p50_ms=_percentile(latencies, 0.50),
            latency_p95_ms=_percentile(latencies, 0.95),
            latency_p99_ms=_percentile(latencies, 0.99),
            last_error=self._last_error,
            last_error_time=self._last_error_time,
        )

    # ── Internals ────────────────────────────────────────────
    def _status_locked(self) -> ProviderStatus:
        if not self._samples:
            return ProviderStatus.HEALTHY
        rate = sum(1 for s in self._samples if not s.success) / len(self._samples)
        if rate >= self._unhealthy_thr:
            return ProviderStatus.UNHEALTHY
        if rate >= self._degraded_thr:
            return ProviderStatus.DEGRADED
        return ProviderStatus.HEALTHY

    def _evict(self) -> None:
        """Drop samples outside the window (caller holds lock)."""
        cutoff = time.monotonic() - self._window
        while self._samples and self._samples[0].timestamp < cutoff:
            self._samples.popleft()


def _percentile(sorted_values: list[float], p: float) -> float:
    if not sorted_values:
        return 0.0
    idx = min(int(len(sorted_values) * p), len(sorted_values) - 1)
    return round(sorted_values[idx], 2)
