"""Specialized AI callers.

Each caller builds a prompt, picks a task type, goes through the
``FallbackDispatcher`` and turns the answer into a typed result.  Provider
exhaustion and unparseable answers degrade to a documented safe default;
a missing provider configuration is left to surface as "service unavailable".
"""

from northstar.application.services.coaching import SAFE_TEXT_FALLBACK, CoachingService
from northstar.application.services.crisis import CrisisService
from northstar.application.services.insights import InsightsService
from northstar.application.services.screening import ScreeningFollowUpService
from northstar.application.services.sentiment import SentimentService
from northstar.application.services.structured import extract_json

__all__ = [
    "SAFE_TEXT_FALLBACK",
    "CoachingService",
    "CrisisService",
    "InsightsService",
    "ScreeningFollowUpService",
    "SentimentService",
    "extract_json",
]
