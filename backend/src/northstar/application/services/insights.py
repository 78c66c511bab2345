"""Short, actionable insight generation."""

from __future__ import annotations

from northstar.application.services.structured import extract_json, record_fallback
from northstar.domain.exceptions import (
    AllProvidersFailedError,
    MalformedStructuredOutputError,
    NoProviderConfiguredError,
    ValidationError,
)
from northstar.shared.providers import CallerContext, FallbackDispatcher, RequestEnvelope

TASK_TYPE = "reflect"
MAX_INSIGHTS = 10

INSIGHTS_SYSTEM = "You are an expert life coach providing actionable insights."

INSIGHTS_PROMPT = """Generate {count} concise, actionable insights based on: "{context}"
Return as JSON array: ["insight1", "insight2", ...]"""


class InsightsService:
    def __init__(self, dispatcher: FallbackDispatcher) -> None:
        self._dispatcher = dispatcher

    async def generate_insights(self, context: str, count: int = 3) -> list[str]:
        """Up to *count* insight strings; ``[]`` when none can be produced."""
        if not 1 <= count <= MAX_INSIGHTS:
            raise ValidationError(f"count must be between 1 and {MAX_INSIGHTS}")
        if not context or not context.strip():
            return []

        envelope = RequestEnvelope(
            system_prompt=INSIGHTS_SYSTEM,
            user_prompt=INSIGHTS_PROMPT.format(count=count, context=context.strip()),
            max_tokens=500,
        )
        try:
            result = await self._dispatcher.route_and_dispatch(
                envelope, TASK_TYPE, CallerContext.for_envelope(envelope)
            )
            data = extract_json(result.text, expect="array")
        except (AllProvidersFailedError, MalformedStructuredOutputError, NoProviderConfiguredError) as exc:
            record_fallback("insights", exc)
            return []

        insights = [str(item).strip() for item in data if isinstance(item, (str, int, float))]
        return [i for i in insights if i][:count]
