"""Result annotation and secret redaction.

``Redactor`` scrubs anything that leaves the routing layer as text (error
reasons, log fields, audit payloads).  ``ResultAnnotator`` attaches the
serving provider and the policy's justification to a response.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from northstar.shared.providers.types import (
    AnnotatedResponse,
    ProviderAttempt,
    ResponseEnvelope,
    RoutingDecision,
)

REDACTED = "[redacted]"
MAX_REASON_LENGTH = 200

# Shapes that look like credentials even when we do not know the value.
_SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"sk-[A-Za-z0-9_\-]{8,}"),
    re.compile(r"AIza[0-9A-Za-z_\-]{16,}"),
    re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]+"),
    re.compile(r"(?i)(api[_-]?key|x-api-key|x-goog-api-key|key|token)([\"']?\s*[:=]\s*[\"']?)[^\s&\"',}]+"),
)


class Redactor:
    """Removes known credential values and secret-shaped substrings."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        # Longest first so a secret containing another is fully removed.
        self._secrets = tuple(
            sorted({s for s in secrets if s and s.strip()}, key=len, reverse=True)
        )

    def redact(self, text: object, *, limit: int = MAX_REASON_LENGTH) -> str:
        value = str(text)
        for secret in self._secrets:
            value = value.replace(secret, REDACTED)
        for pattern in _SECRET_PATTERNS:
            value = pattern.sub(_mask_match, value)
        value = " ".join(value.split())
        if len(value) > limit:
            value = value[: limit - 3] + "..."
        return value


def _mask_match(match: re.Match[str]) -> str:
    if match.lastindex and match.lastindex >= 2:
        return f"{match.group(1)}{match.group(2)}{REDACTED}"
    return REDACTED


class ResultAnnotator:
    """Stamps responses with which provider served them and why."""

    def __init__(self, redactor: Redactor | None = None) -> None:
        self._redactor = redactor or Redactor()

    @property
    def redactor(self) -> Redactor:
        return self._redactor

    def annotate(
        self,
        response: ResponseEnvelope,
        decision: RoutingDecision,
        attempts: Sequence[ProviderAttempt] = (),
        *,
        latency_ms: float = 0.0,
    ) -> AnnotatedResponse:
        reason = decision.reason
        if response.provider_used != decision.primary:
            skipped = ", ".join(a.provider_id.value for a in attempts) or (
                decision.primary.value if decision.primary else "none"
            )
            reason = f"{reason}; served by fallback {response.provider_used.value} (skipped: {skipped})"
        return AnnotatedResponse(
            response=response,
            decision=decision,
            reason=self._redactor.redact(reason, limit=500),
            attempts=tuple(attempts),
            latency_ms=round(latency_ms, 1),
        )
