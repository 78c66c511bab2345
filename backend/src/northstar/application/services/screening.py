"""Follow-up feedback after a completed screening questionnaire."""

from __future__ import annotations

import structlog

from northstar.application.services.structured import record_fallback
from northstar.domain.exceptions import AllProvidersFailedError, NoProviderConfiguredError
from northstar.domain.value_objects import FollowUp, ScreeningSummary
from northstar.shared.providers import CallerContext, FallbackDispatcher, RequestEnvelope

logger = structlog.get_logger(__name__)

TASK_TYPE = "counsel"

FOLLOW_UP_SYSTEM = (
    "You are a supportive health coach providing feedback on mental and physical "
    "health screenings. Be empathetic but clear about next steps."
)

FOLLOW_UP_PROMPT = """You are a compassionate health professional. A user just completed the "{name}" screening with a score of {score}/{max_score}, placing them in the "{category}" category.

The recommendation is: "{recommendation}"

Based on this result, provide:
1. Validation of their experience (1-2 sentences)
2. 2-3 specific, actionable next steps
3. Encouragement about change possibility

Keep it concise (under 150 words) and warm."""


class ScreeningFollowUpService:
    def __init__(self, dispatcher: FallbackDispatcher) -> None:
        self._dispatcher = dispatcher

    async def generate_screening_follow_up(self, screening: ScreeningSummary) -> FollowUp:
        """Warm, short follow-up; the category recommendation when no model answers."""
        envelope = RequestEnvelope(
            system_prompt=FOLLOW_UP_SYSTEM,
            user_prompt=FOLLOW_UP_PROMPT.format(
                name=screening.name,
                score=screening.score,
                max_score=screening.max_score,
                category=screening.category,
                recommendation=screening.recommendation,
            ),
            context_string=(
                f"Screening: {screening.name}\n"
                f"Score: {screening.score}/{screening.max_score}\n"
                f"Category: {screening.category}"
            ),
            max_tokens=400,
        )
        try:
            result = await self._dispatcher.route_and_dispatch(
                envelope,
                TASK_TYPE,
                CallerContext.for_envelope(envelope, domain_tag=screening.pillar),
            )
        except (AllProvidersFailedError, NoProviderConfiguredError) as exc:
            record_fallback("screening", exc)
            return FollowUp(text=screening.recommendation, model="fallback")

        logger.info(
            "screening_follow_up_generated",
            screening=screening.name,
            pillar=screening.pillar,
            provider=result.provider_used.value,
        )
        return FollowUp(
            text=result.text.strip(),
            model=result.response.model_name,
            provider=result.provider_used,
        )
