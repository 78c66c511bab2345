"""Tests for the HTTP provider clients, against ``httpx.MockTransport``."""

from __future__ import annotations

import json
import secrets
from collections.abc import Callable

import httpx
import pytest

from northstar.adapters.outbound.llm import (
    GeneralProviderClient,
    NarrativeProviderClient,
    ReasoningProviderClient,
    build_provider_clients,
)
from northstar.adapters.outbound.llm.base import describe_status
from northstar.config import get_settings
from northstar.domain.enums import ProviderId
from northstar.domain.exceptions import ProviderCallFailedError
from northstar.shared.providers import RequestEnvelope

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """Mock transport handler that remembers every request."""

    def __init__(self, response: httpx.Response | Handler) -> None:
        self._response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if callable(self._response):
            return self._response(request)
        return self._response

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def _client(cls, recorder: Recorder, *, api_key: str | None = "test-key", **kwargs):
    return cls(
        api_key=api_key,
        model=kwargs.pop("model", "default-model"),
        base_url=kwargs.pop("base_url", "https://provider.test/v1/"),
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


@pytest.fixture
def envelope() -> RequestEnvelope:
    return RequestEnvelope(
        system_prompt="Be brief.",
        user_prompt="How do I sleep better?",
        context_string="Pillar: sleep",
        max_tokens=120,
        temperature=1.5,
    )


OPENAI_OK = {
    "model": "gpt-4o-mini-2024",
    "choices": [{"message": {"role": "assistant", "content": "Keep a schedule."}}],
    "usage": {"prompt_tokens": 21, "completion_tokens": 4},
}
ANTHROPIC_OK = {
    "model": "claude-test",
    "content": [
        {"type": "text", "text": "Dim the lights. "},
        {"type": "tool_use", "id": "x"},
        {"type": "text", "text": "Skip caffeine."},
    ],
    "usage": {"input_tokens": 30, "output_tokens": "7"},
}
GEMINI_OK = {
    "modelVersion": "gemini-test-001",
    "candidates": [{"content": {"parts": [{"text": "Go to bed "}, {"text": "earlier."}]}}],
    "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 3},
}


# ═══════════════════════════════════════════════════════════════
#  Request / response mapping
# ═══════════════════════════════════════════════════════════════
class TestReasoningClient:
    @pytest.mark.asyncio
    async def test_request_shape(self, envelope) -> None:
        recorder = Recorder(httpx.Response(200, json=OPENAI_OK))
        client = _client(ReasoningProviderClient, recorder)

        result = await client.invoke(envelope)

        request = recorder.requests[0]
        assert str(request.url) == "https://provider.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer test-key"
        body = recorder.last_json
        assert body["model"] == "default-model"
        assert body["max_tokens"] == 120
        assert body["temperature"] == 1.5
        assert body["messages"] == [
            {"role": "system", "content": "Be brief.\n\nPillar: sleep"},
            {"role": "user", "content": "How do I sleep better?"},
        ]
        assert result.text == "Keep a schedule."
        assert result.model_name == "gpt-4o-mini-2024"
        assert (result.prompt_tokens, result.completion_tokens) == (21, 4)

    @pytest.mark.asyncio
    async def test_model_override_and_no_system(self) -> None:
        recorder = Recorder(httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]}))
        client = _client(ReasoningProviderClient, recorder)

        result = await client.invoke(RequestEnvelope("", "hi", model_override="gpt-4o"))

        body = recorder.last_json
        assert body["model"] == "gpt-4o"
        assert body["messages"] == [{"role": "user", "content": "hi"}]
        assert result.model_name == "gpt-4o"
        assert result.prompt_tokens is None


class TestNarrativeClient:
    @pytest.mark.asyncio
    async def test_request_shape(self, envelope) -> None:
        recorder = Recorder(httpx.Response(200, json=ANTHROPIC_OK))
        client = _client(NarrativeProviderClient, recorder)

        result = await client.invoke(envelope)

        request = recorder.requests[0]
        assert str(request.url) == "https://provider.test/v1/messages"
        assert request.headers["x-api-key"] == "test-key"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert "authorization" not in request.headers
        body = recorder.last_json
        assert body["system"] == "Be brief.\n\nPillar: sleep"
        assert body["temperature"] == 1.0
        assert body["messages"] == [{"role": "user", "content": "How do I sleep better?"}]
        assert result.text == "Dim the lights. Skip caffeine."
        assert (result.prompt_tokens, result.completion_tokens) == (30, 7)


class TestGeneralClient:
    @pytest.mark.asyncio
    async def test_request_shape(self, envelope) -> None:
        recorder = Recorder(httpx.Response(200, json=GEMINI_OK))
        client = _client(GeneralProviderClient, recorder, model="gemini-1.5-flash")

        result = await client.invoke(envelope)

        request = recorder.requests[0]
        assert str(request.url) == "https://provider.test/v1/models/gemini-1.5-flash:generateContent"
        assert request.headers["x-goog-api-key"] == "test-key"
        body = recorder.last_json
        assert body["systemInstruction"] == {"parts": [{"text": "Be brief.\n\nPillar: sleep"}]}
        assert body["generationConfig"] == {"temperature": 1.5, "maxOutputTokens": 120}
        assert result.text == "Go to bed earlier."
        assert result.model_name == "gemini-test-001"

    @pytest.mark.asyncio
    async def test_key_never_in_url(self, envelope) -> None:
        key = secrets.token_urlsafe(24)
        recorder = Recorder(httpx.Response(200, json=GEMINI_OK))
        client = _client(GeneralProviderClient, recorder, api_key=key)

        await client.invoke(envelope)

        assert key not in str(recorder.requests[0].url)


# ═══════════════════════════════════════════════════════════════
#  Failure mapping
# ═══════════════════════════════════════════════════════════════
ALL_CLIENTS = [ReasoningProviderClient, NarrativeProviderClient, GeneralProviderClient]


class TestFailures:
    @pytest.mark.parametrize(
        ("status", "reason"),
        [
            (401, "authentication rejected (HTTP 401)"),
            (403, "authentication rejected (HTTP 403)"),
            (429, "rate limited (HTTP 429)"),
            (500, "upstream error (HTTP 500)"),
            (503, "upstream error (HTTP 503)"),
            (400, "request rejected (HTTP 400)"),
        ],
    )
    def test_describe_status(self, status: int, reason: str) -> None:
        assert describe_status(status) == reason

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cls", ALL_CLIENTS)
    async def test_error_status_omits_body_and_key(self, cls, envelope) -> None:
        key = secrets.token_urlsafe(24)
        recorder = Recorder(
            httpx.Response(401, json={"error": {"message": f"Incorrect API key provided: {key}"}})
        )
        client = _client(cls, recorder, api_key=key)

        with pytest.raises(ProviderCallFailedError) as excinfo:
            await client.invoke(envelope)

        assert excinfo.value.reason == "authentication rejected (HTTP 401)"
        assert excinfo.value.provider_id == cls.provider.value
        assert key not in str(excinfo.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cls", ALL_CLIENTS)
    async def test_unconfigured_makes_no_request(self, cls, envelope) -> None:
        recorder = Recorder(httpx.Response(200, json={}))
        client = _client(cls, recorder, api_key="  ")

        assert client.is_configured() is False
        assert client.credentials() == ()
        with pytest.raises(ProviderCallFailedError, match="not configured"):
            await client.invoke(envelope)
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_timeout(self, envelope) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        client = _client(ReasoningProviderClient, Recorder(_raise))
        with pytest.raises(ProviderCallFailedError) as excinfo:
            await client.invoke(envelope)
        assert excinfo.value.reason == "request timed out"

    @pytest.mark.asyncio
    async def test_network_error(self, envelope) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(NarrativeProviderClient, Recorder(_raise))
        with pytest.raises(ProviderCallFailedError) as excinfo:
            await client.invoke(envelope)
        assert excinfo.value.reason == "network error (ConnectError)"
        assert excinfo.value.__cause__ is None

    @pytest.mark.asyncio
    async def test_invalid_json(self, envelope) -> None:
        client = _client(GeneralProviderClient, Recorder(httpx.Response(200, content=b"<html>oops")))
        with pytest.raises(ProviderCallFailedError, match="invalid JSON response"):
            await client.invoke(envelope)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("cls", "payload"),
        [
            (ReasoningProviderClient, {"choices": []}),
            (NarrativeProviderClient, {"error": "nope"}),
            (GeneralProviderClient, {"candidates": [{"finishReason": "SAFETY"}]}),
        ],
    )
    async def test_unexpected_shape(self, cls, payload, envelope) -> None:
        client = _client(cls, Recorder(httpx.Response(200, json=payload)))
        with pytest.raises(ProviderCallFailedError, match="unexpected response shape"):
            await client.invoke(envelope)

    @pytest.mark.asyncio
    async def test_empty_text(self, envelope) -> None:
        payload = {"choices": [{"message": {"content": None}}]}
        client = _client(ReasoningProviderClient, Recorder(httpx.Response(200, json=payload)))
        with pytest.raises(ProviderCallFailedError, match="empty response text"):
            await client.invoke(envelope)


# ═══════════════════════════════════════════════════════════════
#  Construction from settings
# ═══════════════════════════════════════════════════════════════
class TestBuildProviderClients:
    @pytest.mark.asyncio
    async def test_one_client_per_provider(self) -> None:
        settings = get_settings(
            _env_file=None,
            reasoning_api_key="sk-reasoning",
            narrative_api_key=None,
            general_api_key=None,
            general_model="gemini-custom",
        )
        clients = build_provider_clients(settings)
        try:
            assert [c.provider_id for c in clients] == list(ProviderId)
            assert [c.is_configured() for c in clients] == [True, False, False]
            assert clients[0].credentials() == ("sk-reasoning",)
            assert clients[2].model_name == "gemini-custom"
        finally:
            for client in clients:
                await client.aclose()
