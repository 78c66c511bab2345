"""Concrete provider clients: reasoning, narrative and general."""

from __future__ import annotations

from typing import Any

from northstar.adapters.outbound.llm.base import HttpProviderClient, as_int
from northstar.domain.enums import ProviderId
from northstar.shared.providers.types import RawProviderResult, RequestEnvelope

OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

ANTHROPIC_API_VERSION = "2023-06-01"


class ReasoningProviderClient(HttpProviderClient):
    """OpenAI-compatible chat completions endpoint."""

    provider = ProviderId.REASONING

    def _build_request(
        self, envelope: RequestEnvelope, model: str
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        messages: list[dict[str, str]] = []
        system = envelope.full_system_prompt()
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": envelope.user_prompt})
        return (
            f"{self._base_url}/chat/completions",
            {
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            {
                "model": model,
                "messages": messages,
                "max_tokens": envelope.max_tokens,
                "temperature": envelope.temperature,
            },
        )

    def _parse_response(self, data: Any, model: str) -> RawProviderResult:
        usage = data.get("usage") or {}
        return RawProviderResult(
            text=data["choices"][0]["message"].get("content") or "",
            model_name=data.get("model") or model,
            prompt_tokens=as_int(usage.get("prompt_tokens")),
            completion_tokens=as_int(usage.get("completion_tokens")),
        )


class NarrativeProviderClient(HttpProviderClient):
    """Anthropic messages endpoint."""

    provider = ProviderId.NARRATIVE

    def _build_request(
        self, envelope: RequestEnvelope, model: str
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        body: dict[str, Any] = {
            "model": model,
            "max_tokens": envelope.max_tokens,
            # Messages API caps temperature at 1.0
            "temperature": min(envelope.temperature, 1.0),
            "messages": [{"role": "user", "content": envelope.user_prompt}],
        }
        system = envelope.full_system_prompt()
        if system:
            body["system"] = system
        return (
            f"{self._base_url}/messages",
            {
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            body,
        )

    def _parse_response(self, data: Any, model: str) -> RawProviderResult:
        text = "".join(
            block.get("text", "")
            for block in data["content"]
            if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        return RawProviderResult(
            text=text,
            model_name=data.get("model") or model,
            prompt_tokens=as_int(usage.get("input_tokens")),
            completion_tokens=as_int(usage.get("output_tokens")),
        )


class GeneralProviderClient(HttpProviderClient):
    """Google Gemini ``generateContent`` endpoint.

    The key travels in the ``x-goog-api-key`` header so it never shows up in
    a URL, and therefore never in an httpx error message.
    """

    provider = ProviderId.GENERAL

    def _build_request(
        self, envelope: RequestEnvelope, model: str
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": envelope.user_prompt}]}],
            "generationConfig": {
                "temperature": envelope.temperature,
                "maxOutputTokens": envelope.max_tokens,
            },
        }
        system = envelope.full_system_prompt()
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return (
            f"{self._base_url}/models/{model}:generateContent",
            {
                "x-goog-api-key": self._api_key,
                "Content-Type": "application/json",
            },
            body,
        )

    def _parse_response(self, data: Any, model: str) -> RawProviderResult:
        parts = data["candidates"][0]["content"]["parts"]
        usage = data.get("usageMetadata") or {}
        return RawProviderResult(
            text="".join(part.get("text", "") for part in parts),
            model_name=data.get("modelVersion") or model,
            prompt_tokens=as_int(usage.get("promptTokenCount")),
            completion_tokens=as_int(usage.get("candidatesTokenCount")),
        )
