"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Callable, Iterable
from typing import Union

import pytest

# Add src to path so imports work
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from northstar.adapters.outbound.event_log import InMemoryEventLog
from northstar.domain.enums import ProviderId
from northstar.domain.exceptions import ProviderCallFailedError
from northstar.ports.outbound import ProviderClient
from northstar.shared.providers import (
    FallbackDispatcher,
    ProviderRegistry,
    RawProviderResult,
    RequestEnvelope,
    RoutingPolicy,
)

# A scripted reply: text, an exception to raise, or a coroutine factory.
Reply = Union[str, BaseException, Callable[[RequestEnvelope], object]]


class FakeProviderClient(ProviderClient):
    """Scripted provider client that records every envelope it receives."""

    def __init__(
        self,
        provider_id: ProviderId,
        replies: Iterable[Reply] = ("ok",),
        *,
        api_key: str | None = "test-key",
        model: str = "fake-model",
        delay: float = 0.0,
    ) -> None:
        self._provider_id = provider_id
        self._replies = list(replies)
        self._api_key = api_key
        self._model = model
        self._delay = delay
        self.calls: list[RequestEnvelope] = []
        self.closed = False

    @property
    def provider_id(self) -> ProviderId:
        return self._provider_id

    @property
    def model_name(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def credentials(self) -> tuple[str, ...]:
        return (self._api_key,) if self._api_key else ()

    async def invoke(self, envelope: RequestEnvelope) -> RawProviderResult:
        self.calls.append(envelope)
        if self._delay:
            await asyncio.sleep(self._delay)
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(envelope)
        return RawProviderResult(
            text=str(reply),
            model_name=envelope.model_override or self._model,
            prompt_tokens=10,
            completion_tokens=5,
        )

    async def aclose(self) -> None:
        self.closed = True


def failing(provider_id: ProviderId, reason: str = "upstream error (HTTP 503)") -> ProviderCallFailedError:
    return ProviderCallFailedError(provider_id.value, reason)


@pytest.fixture
def event_log() -> InMemoryEventLog:
    return InMemoryEventLog()


@pytest.fixture
def make_dispatcher(event_log: InMemoryEventLog) -> Callable[..., FallbackDispatcher]:
    """Build a dispatcher over the given fake clients."""

    def _make(*clients: ProviderClient, **kwargs: object) -> FallbackDispatcher:
        kwargs.setdefault("policy", RoutingPolicy())
        kwargs.setdefault("event_log", event_log)
        kwargs.setdefault("timeout_s", 1.0)
        return FallbackDispatcher(ProviderRegistry(clients), **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def all_providers() -> dict[ProviderId, FakeProviderClient]:
    return {pid: FakeProviderClient(pid, (f"from {pid.value}",)) for pid in ProviderId}


@pytest.fixture
def sample_envelope() -> RequestEnvelope:
    return RequestEnvelope(system_prompt="You are helpful.", user_prompt="Hello there")
