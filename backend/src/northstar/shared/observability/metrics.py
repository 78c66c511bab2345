"""Prometheus metrics for the NorthStar AI service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── AI provider metrics ──────────────────────────────────────
PROVIDER_INVOCATIONS = Counter(
    "ai_provider_invocations_total",
    "AI provider invocations by outcome",
    ["provider", "status"],  # success / failure / skipped
)

PROVIDER_LATENCY = Histogram(
    "ai_provider_latency_seconds",
    "AI provider call latency",
    ["provider"],
    buckets=(0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

DISPATCH_OUTCOMES = Counter(
    "ai_dispatch_outcomes_total",
    "Logical AI requests by how they were served",
    ["outcome"],  # primary / fallback / exhausted / unconfigured
)

# ── Caller metrics ───────────────────────────────────────────
STRUCTURED_OUTPUT_FALLBACKS = Counter(
    "ai_structured_output_fallbacks_total",
    "Caller results replaced by their safe default",
    ["caller"],
)
