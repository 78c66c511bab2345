"""Shared HTTP plumbing for provider clients.

Each concrete client only maps a ``RequestEnvelope`` to its wire shape and
the wire response back to a ``RawProviderResult``.  Transport failures,
HTTP status handling and response sanity checks live here so every
provider fails the same way: ``ProviderCallFailedError`` with a short
category and status code, never a credential or a raw body.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any

import httpx

from northstar.domain.enums import ProviderId
from northstar.domain.exceptions import ProviderCallFailedError
from northstar.ports.outbound import ProviderClient
from northstar.shared.providers.types import RawProviderResult, RequestEnvelope

DEFAULT_CLIENT_TIMEOUT_SECONDS = 30.0


def describe_status(status_code: int) -> str:
    """Short, body-free category for an HTTP error status."""
    if status_code in (401, 403):
        return f"authentication rejected (HTTP {status_code})"
    if status_code == 429:
        return "rate limited (HTTP 429)"
    if status_code >= 500:
        return f"upstream error (HTTP {status_code})"
    return f"request rejected (HTTP {status_code})"


class HttpProviderClient(ProviderClient):
    """Base for JSON-over-HTTPS text-generation providers."""

    provider: ProviderId

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout_s: float = DEFAULT_CLIENT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    @property
    def provider_id(self) -> ProviderId:
        return self.provider

    @property
    def model_name(self) -> str:
        return self._model

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def credentials(self) -> tuple[str, ...]:
        return (self._api_key,) if self._api_key else ()

    async def invoke(self, envelope: RequestEnvelope) -> RawProviderResult:
        if not self.is_configured():
            raise self._fail("not configured")

        model = envelope.model_override or self._model
        url, headers, body = self._build_request(envelope, model)

        try:
            response = await self._client.post(url, headers=headers, json=body)
        except httpx.TimeoutException:
            raise self._fail("request timed out") from None
        except httpx.HTTPError as exc:
            raise self._fail(f"network error ({type(exc).__name__})") from None

        if response.status_code >= 400:
            raise self._fail(describe_status(response.status_code))

        try:
            data = response.json()
        except ValueError:
            raise self._fail("invalid JSON response") from None

        try:
            result = self._parse_response(data, model)
        except (KeyError, IndexError, TypeError, AttributeError):
            raise self._fail("unexpected response shape") from None

        if not result.text.strip():
            raise self._fail("empty response text")
        return result

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Provider-specific mapping ────────────────────────────
    @abstractmethod
    def _build_request(
        self, envelope: RequestEnvelope, model: str
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return ``(url, headers, json_body)`` for one call."""

    @abstractmethod
    def _parse_response(self, data: Any, model: str) -> RawProviderResult: ...

    def _fail(self, reason: str) -> ProviderCallFailedError:
        return ProviderCallFailedError(self.provider.value, reason)


def as_int(value: Any) -> int | None:
    """Token counts arrive as ints, strings or not at all."""
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
