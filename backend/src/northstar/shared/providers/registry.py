"""Immutable registry of provider clients, built once at startup."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator
from types import MappingProxyType

import structlog

from northstar.domain.enums import ProviderId
from northstar.ports.outbound import ProviderClient
from northstar.shared.providers.annotator import Redactor

logger = structlog.get_logger(__name__)


class ProviderRegistry:
    """Read-only ``ProviderId → ProviderClient`` mapping shared by all requests."""

    def __init__(self, clients: Iterable[ProviderClient]) -> None:
        mapping: dict[ProviderId, ProviderClient] = {}
        for client in clients:
            if client.provider_id in mapping:
                raise ValueError(f"duplicate provider client: {client.provider_id.value}")
            mapping[client.provider_id] = client
        self._clients = MappingProxyType(mapping)
        self._redactor = Redactor(
            secret for client in mapping.values() for secret in client.credentials()
        )

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._clients

    def __iter__(self) -> Iterator[ProviderClient]:
        return iter(self._clients.values())

    def __len__(self) -> int:
        return len(self._clients)

    def get(self, provider_id: ProviderId) -> ProviderClient | None:
        return self._clients.get(provider_id)

    def configured_ids(self) -> tuple[ProviderId, ...]:
        return tuple(pid for pid, client in self._clients.items() if client.is_configured())

    @property
    def redactor(self) -> Redactor:
        """Redactor primed with every credential held by the registry."""
        return self._redactor

    def describe(self) -> dict[str, dict[str, object]]:
        """Configuration summary safe for logs (no credential values)."""
        return {
            pid.value: {"configured": client.is_configured(), "model": client.model_name}
            for pid, client in self._clients.items()
        }

    async def aclose(self) -> None:
        results = await asyncio.gather(
            *(client.aclose() for client in self._clients.values()),
            return_exceptions=True,
        )
        for client, result in zip(self._clients.values(), results):
            if isinstance(result, Exception):
                logger.warning(
                    "provider_client_close_failed",
                    provider=client.provider_id.value,
                    error_type=type(result).__name__,
                )
