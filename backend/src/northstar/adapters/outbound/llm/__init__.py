"""LLM provider adapters.

One client per ``ProviderId``, each bound to at most one credential.  All
three are always built; a client without a key is simply unconfigured and
the dispatcher skips it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from northstar.adapters.outbound.llm.base import HttpProviderClient
from northstar.adapters.outbound.llm.clients import (
    GeneralProviderClient,
    NarrativeProviderClient,
    ReasoningProviderClient,
)

if TYPE_CHECKING:
    import httpx

    from northstar.config import Settings

logger = structlog.get_logger(__name__)


def build_provider_clients(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[HttpProviderClient]:
    """Build the provider clients from settings values."""

    def _secret(value: object) -> str | None:
        return value.get_secret_value() if value is not None else None  # type: ignore[attr-defined]

    # The dispatcher enforces the per-call timeout; the client timeout only
    # stops sockets outliving it.
    client_timeout = settings.provider_timeout_seconds + 5.0

    clients: list[HttpProviderClient] = [
        ReasoningProviderClient(
            api_key=_secret(settings.reasoning_api_key),
            model=settings.reasoning_model,
            base_url=settings.reasoning_base_url,
            timeout_s=client_timeout,
            transport=transport,
        ),
        NarrativeProviderClient(
            api_key=_secret(settings.narrative_api_key),
            model=settings.narrative_model,
            base_url=settings.narrative_base_url,
            timeout_s=client_timeout,
            transport=transport,
        ),
        GeneralProviderClient(
            api_key=_secret(settings.general_api_key),
            model=settings.general_model,
            base_url=settings.general_base_url,
            timeout_s=client_timeout,
            transport=transport,
        ),
    ]

    logger.info(
        "provider_clients_built",
        providers={c.provider_id.value: {"configured": c.is_configured(), "model": c.model_name} for c in clients},
    )
    return clients


__all__ = [
    "GeneralProviderClient",
    "HttpProviderClient",
    "NarrativeProviderClient",
    "ReasoningProviderClient",
    "build_provider_clients",
]
