"""Free-text coaching replies for the pillar agents."""

from __future__ import annotations

import structlog

from northstar.application.services.structured import record_fallback
from northstar.domain.enums import Pillar, ProviderId
from northstar.domain.exceptions import AllProvidersFailedError, NoProviderConfiguredError
from northstar.domain.value_objects import CoachingReply
from northstar.shared.providers import CallerContext, FallbackDispatcher, RequestEnvelope

logger = structlog.get_logger(__name__)

TASK_TYPE = "coach"

SAFE_TEXT_FALLBACK = "NorthStar AI is temporarily unavailable. Please try again soon."

COACH_SYSTEM = """You are NorthStar, a warm and practical wellness coach{focus}.
Give specific, encouraging guidance in plain language. Keep replies under 200 words.
You are not a substitute for medical, legal or financial professionals; suggest one
when the situation calls for it."""


class CoachingService:
    def __init__(self, dispatcher: FallbackDispatcher) -> None:
        self._dispatcher = dispatcher

    async def coach_reply(
        self,
        message: str,
        pillar: Pillar | str | None = None,
        context: str | None = None,
        *,
        provider: ProviderId | str | None = None,
    ) -> CoachingReply:
        """Answer *message* in the voice of the *pillar* coach.

        ``provider`` is an explicit override; unknown values are ignored by
        the routing policy.  When no provider is configured or every one
        fails, the reply is the generic unavailable notice with
        ``degraded=True``.
        """
        domain = pillar.value if isinstance(pillar, Pillar) else pillar
        focus = f" specialising in {domain.replace('-', ' ')}" if domain else ""
        envelope = RequestEnvelope(
            system_prompt=COACH_SYSTEM.format(focus=focus),
            user_prompt=message,
            context_string=context or None,
            max_tokens=600,
        )
        try:
            result = await self._dispatcher.route_and_dispatch(
                envelope,
                TASK_TYPE,
                CallerContext.for_envelope(envelope, explicit_override=provider, domain_tag=domain),
            )
        except (AllProvidersFailedError, NoProviderConfiguredError) as exc:
            record_fallback("coach", exc)
            return CoachingReply(text=SAFE_TEXT_FALLBACK, provider=None, degraded=True)

        logger.info("coach_reply_served", pillar=domain, **result.to_dict())
        return CoachingReply(
            text=result.text.strip(),
            provider=result.provider_used,
            degraded=False,
            reason=result.reason,
        )
