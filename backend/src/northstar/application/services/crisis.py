"""Crisis safety check.

Runs before a message reaches any coaching agent.  A fast keyword pre-screen
catches explicit statements; only when it finds nothing is the model asked.
A model positive counts only above ``AI_CONFIDENCE_THRESHOLD``.

The model fallback never claims a crisis.  It reports ``method="fallback"``
and points the user at emergency resources instead, so "could not assess"
stays distinguishable from "assessed as safe".
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, replace

import structlog

from northstar.application.services.structured import extract_json, record_fallback
from northstar.domain.enums import CrisisSeverity, CrisisType, Pillar
from northstar.domain.exceptions import (
    AllProvidersFailedError,
    MalformedStructuredOutputError,
    NoProviderConfiguredError,
)
from northstar.domain.value_objects import (
    CrisisAssessment,
    CrisisCheckResult,
    CrisisResource,
)
from northstar.shared.providers import CallerContext, FallbackDispatcher, RequestEnvelope

logger = structlog.get_logger(__name__)

TASK_TYPE = "assess"
DOMAIN_TAG = Pillar.MENTAL_HEALTH.value
AI_CONFIDENCE_THRESHOLD = 70

FALLBACK_RECOMMENDATION = (
    "Unable to analyze this message right now. If you or someone else may be "
    "in danger, contact local emergency services or a crisis line immediately."
)


# ── Keyword pre-screen ───────────────────────────────────────
@dataclass(frozen=True)
class _CrisisPattern:
    keywords: tuple[str, ...]
    severity: CrisisSeverity
    hotline: str


CRISIS_PATTERNS: dict[CrisisType, _CrisisPattern] = {
    CrisisType.SUICIDE: _CrisisPattern(
        keywords=(
            "suicide",
            "suicidal",
            "kill myself",
            "end my life",
            "not worth living",
            "die",
            "death wish",
        ),
        severity=CrisisSeverity.CRITICAL,
        hotline="National Suicide Prevention Lifeline",
    ),
    CrisisType.SELF_HARM: _CrisisPattern(
        keywords=(
            "self-harm",
            "self harm",
            "cutting",
            "cut myself",
            "hurt myself",
            "injure myself",
            "blood",
            "scars",
        ),
        severity=CrisisSeverity.HIGH,
        hotline="Crisis Text Line",
    ),
    CrisisType.SEVERE_CRISIS: _CrisisPattern(
        keywords=(
            "crisis",
            "emergency",
            "severe",
            "urgent",
            "can't handle",
            "falling apart",
            "breaking down",
            "panic attack",
        ),
        severity=CrisisSeverity.HIGH,
        hotline="National Crisis Line",
    ),
    CrisisType.ABUSE: _CrisisPattern(
        keywords=(
            "abuse",
            "hit me",
            "hurt me",
            "assault",
            "violence",
            "dangerous",
            "threat",
        ),
        severity=CrisisSeverity.CRITICAL,
        hotline="National Domestic Violence Hotline",
    ),
    CrisisType.SUBSTANCE: _CrisisPattern(
        keywords=(
            "overdose",
            "poison",
            "drugs",
            "alcohol",
            "intoxicated",
            "substance abuse",
        ),
        severity=CrisisSeverity.CRITICAL,
        hotline="SAMHSA National Helpline",
    ),
}

# Whole words only: "die" must not fire on "diet".
_KEYWORD_RES: dict[CrisisType, re.Pattern[str]] = {
    crisis_type: re.compile(
        r"(?<![a-z])(?:" + "|".join(re.escape(k) for k in pattern.keywords) + r")(?![a-z])"
    )
    for crisis_type, pattern in CRISIS_PATTERNS.items()
}


# ── Resources & messages ─────────────────────────────────────
CRISIS_RESOURCES: dict[str, dict[str, CrisisResource]] = {
    "us": {
        r.name: r
        for r in (
            CrisisResource(
                "National Suicide Prevention Lifeline",
                "988",
                "https://988lifeline.org",
                "Free, confidential support 24/7",
            ),
            CrisisResource(
                "Crisis Text Line",
                "Text HOME to 741741",
                "https://www.crisistextline.org",
                "Text-based crisis support",
            ),
            CrisisResource(
                "National Crisis Line",
                "1-800-784-2433",
                "https://www.samhsa.gov",
                "SAMHSA National Helpline",
            ),
            CrisisResource(
                "National Domestic Violence Hotline",
                "1-800-799-7233",
                "https://www.thehotline.org",
                "Support for domestic violence",
            ),
            CrisisResource(
                "Emergency Services",
                "911",
                "https://911.gov",
                "Call if in immediate danger",
            ),
        )
    },
}

RESOURCES_BY_TYPE: dict[CrisisType, tuple[str, ...]] = {
    CrisisType.SUICIDE: (
        "National Suicide Prevention Lifeline",
        "Crisis Text Line",
        "Emergency Services",
    ),
    CrisisType.SELF_HARM: ("Crisis Text Line", "National Suicide Prevention Lifeline"),
    CrisisType.SEVERE_CRISIS: ("National Crisis Line", "National Suicide Prevention Lifeline"),
    CrisisType.ABUSE: ("National Domestic Violence Hotline", "Emergency Services"),
    CrisisType.SUBSTANCE: ("National Crisis Line", "Emergency Services"),
    CrisisType.ERROR: ("Emergency Services", "National Suicide Prevention Lifeline"),
}

CRISIS_MESSAGES: dict[CrisisType, str] = {
    CrisisType.SUICIDE: (
        "I hear that you're in pain. Your life matters, and there are people who "
        "want to help. Please reach out to a crisis counselor right now."
    ),
    CrisisType.SELF_HARM: (
        "I'm concerned about your safety. Please contact a mental health "
        "professional or crisis counselor immediately."
    ),
    CrisisType.SEVERE_CRISIS: (
        "You're going through something very difficult. Professional support is "
        "available right now - please reach out."
    ),
    CrisisType.ABUSE: (
        "Your safety is the priority. Please contact the domestic violence hotline "
        "or emergency services."
    ),
    CrisisType.SUBSTANCE: (
        "If you've overdosed or are in danger, please call 911 or emergency "
        "services immediately."
    ),
    CrisisType.ERROR: (
        "I want to make sure you're safe. If you're in crisis, please reach out to "
        "one of the resources below."
    ),
}


def get_crisis_resources(crisis_type: CrisisType | None = None, country: str = "us") -> tuple[CrisisResource, ...]:
    """Resources relevant to *crisis_type*; every resource when untyped."""
    resources = CRISIS_RESOURCES.get(country.lower(), CRISIS_RESOURCES["us"])
    names = RESOURCES_BY_TYPE.get(crisis_type, tuple(resources)) if crisis_type else tuple(resources)
    return tuple(resources[name] for name in names if name in resources)


def check_crisis_patterns(message: str) -> CrisisCheckResult | None:
    """Keyword pre-screen.  Critical matches beat high ones; ``None`` if nothing fires."""
    text = message.lower().replace("’", "'")
    matched: CrisisType | None = None
    for crisis_type, regex in _KEYWORD_RES.items():
        if not regex.search(text):
            continue
        severity = CRISIS_PATTERNS[crisis_type].severity
        if matched is None or (
            severity == CrisisSeverity.CRITICAL
            and CRISIS_PATTERNS[matched].severity != CrisisSeverity.CRITICAL
        ):
            matched = crisis_type

    if matched is None:
        return None
    return CrisisCheckResult(
        is_crisis=True,
        severity=CRISIS_PATTERNS[matched].severity,
        type=matched,
        message=CRISIS_MESSAGES[matched],
        method="pattern",
    )


# ── Model-based detection ────────────────────────────────────
CRISIS_SYSTEM = (
    "You are a mental health crisis detection system. "
    "Be cautious and err on the side of safety."
)

CRISIS_PROMPT = (
    "Determine if this message indicates someone in crisis/emergency.\n"
    'Respond with JSON: {{"isCrisis": true/false, "confidence": 0-100, '
    '"type": "suicide|self_harm|severe_crisis|abuse|substance|null", '
    '"recommendation": "..."}}\n\n'
    'Message: "{message}"'
)


class CrisisService:
    def __init__(self, dispatcher: FallbackDispatcher) -> None:
        self._dispatcher = dispatcher

    async def detect_crisis(self, message: str) -> CrisisAssessment:
        """Ask a model whether *message* signals a crisis.

        Falls back to ``is_crisis=False, confidence=0, method="fallback"``
        when providers are missing or fail, or when the answer cannot be
        parsed.
        """
        envelope = RequestEnvelope(
            system_prompt=CRISIS_SYSTEM,
            user_prompt=CRISIS_PROMPT.format(message=message.strip()),
            max_tokens=150,
            temperature=0.1,
        )
        try:
            result = await self._dispatcher.route_and_dispatch(
                envelope,
                TASK_TYPE,
                CallerContext.for_envelope(envelope, domain_tag=DOMAIN_TAG),
            )
            data = extract_json(result.text, expect="object")
            if not isinstance(data, Mapping):
                raise MalformedStructuredOutputError("crisis answer is not an object")
        except (AllProvidersFailedError, MalformedStructuredOutputError, NoProviderConfiguredError) as exc:
            record_fallback("crisis", exc)
            return fallback_assessment()

        confidence = data.get("confidence")
        # Some models answer on a 0-1 scale despite the prompt.
        if isinstance(confidence, float) and 0 < confidence <= 1:
            confidence *= 100
        return CrisisAssessment(
            is_crisis=data.get("isCrisis", data.get("is_crisis")) is True,
            confidence=confidence,
            recommendation=data.get("recommendation") or "",
            method="ai",
            crisis_type=data.get("type"),
        )

    async def perform_crisis_check(self, message: str, country: str = "us") -> CrisisCheckResult:
        """Keyword pre-screen, then model detection, with resources attached."""
        if not isinstance(message, str) or not message.strip():
            return CrisisCheckResult(is_crisis=False)

        matched = check_crisis_patterns(message)
        if matched is not None:
            logger.warning("crisis_pattern_matched", crisis_type=matched.type.value, severity=matched.severity.value)
            return _with_resources(matched, country)

        assessment = await self.detect_crisis(message)

        if assessment.is_fallback:
            return CrisisCheckResult(
                is_crisis=False,
                type=CrisisType.ERROR,
                message=CRISIS_MESSAGES[CrisisType.ERROR],
                method="fallback",
                resources=get_crisis_resources(CrisisType.ERROR, country),
                confidence=0,
            )

        if assessment.is_crisis and assessment.confidence > AI_CONFIDENCE_THRESHOLD:
            crisis_type = assessment.crisis_type or CrisisType.SEVERE_CRISIS
            logger.warning("crisis_model_positive", crisis_type=crisis_type.value, confidence=assessment.confidence)
            return _with_resources(
                CrisisCheckResult(
                    is_crisis=True,
                    severity=CRISIS_PATTERNS[crisis_type].severity,
                    type=crisis_type,
                    message=CRISIS_MESSAGES[crisis_type],
                    method="ai",
                    confidence=assessment.confidence,
                ),
                country,
            )

        return CrisisCheckResult(is_crisis=False, method="ai", confidence=assessment.confidence)


def fallback_assessment() -> CrisisAssessment:
    return CrisisAssessment(
        is_crisis=False,
        confidence=0,
        recommendation=FALLBACK_RECOMMENDATION,
        method="fallback",
    )


def _with_resources(result: CrisisCheckResult, country: str) -> CrisisCheckResult:
    return replace(result, resources=get_crisis_resources(result.type, country))
