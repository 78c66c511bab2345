"""Sentiment scoring for journal entries and check-ins."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from northstar.application.services.structured import extract_json, record_fallback
from northstar.domain.exceptions import (
    AllProvidersFailedError,
    MalformedStructuredOutputError,
    NoProviderConfiguredError,
)
from northstar.domain.value_objects import SentimentResult
from northstar.shared.providers import CallerContext, FallbackDispatcher, RequestEnvelope

logger = structlog.get_logger(__name__)

TASK_TYPE = "score"

SENTIMENT_SYSTEM = "You are a sentiment analysis expert."

SENTIMENT_PROMPT = (
    "Analyze the sentiment of this text. Respond with ONLY a JSON object: "
    '{{"sentiment": "positive|neutral|negative", "score": 0-100}}\n\n'
    'Text: "{text}"'
)


class SentimentService:
    def __init__(self, dispatcher: FallbackDispatcher) -> None:
        self._dispatcher = dispatcher

    async def analyze_sentiment(self, text: str) -> SentimentResult:
        """Score *text*; ``neutral / 50`` whenever no usable answer comes back."""
        if not text or not text.strip():
            return SentimentResult()

        envelope = RequestEnvelope(
            system_prompt=SENTIMENT_SYSTEM,
            user_prompt=SENTIMENT_PROMPT.format(text=text.strip()),
            max_tokens=50,
            temperature=0.2,
        )
        try:
            result = await self._dispatcher.route_and_dispatch(
                envelope, TASK_TYPE, CallerContext.for_envelope(envelope)
            )
            data = extract_json(result.text, expect="object")
            if not isinstance(data, Mapping):
                raise MalformedStructuredOutputError("sentiment answer is not an object")
        except (AllProvidersFailedError, MalformedStructuredOutputError, NoProviderConfiguredError) as exc:
            record_fallback("sentiment", exc)
            return SentimentResult()

        sentiment = SentimentResult(sentiment=data.get("sentiment"), score=data.get("score"))
        logger.debug("sentiment_scored", provider=result.provider_used.value, **sentiment.to_dict())
        return sentiment
