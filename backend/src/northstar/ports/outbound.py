"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The routing layer
and the application services depend only on these abstractions, never on
concrete HTTP clients or storage drivers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from northstar.domain.enums import ProviderId

if TYPE_CHECKING:
    from northstar.shared.providers.types import RawProviderResult, RequestEnvelope


# ═══════════════════════════════════════════════════════════════
#  AI provider port
# ═══════════════════════════════════════════════════════════════
class ProviderClient(ABC):
    """One external text-generation backend bound to one credential.

    Constructed once at process start.  A client without a credential is
    *unconfigured*, which is a valid runtime state rather than an error.
    """

    @property
    @abstractmethod
    def provider_id(self) -> ProviderId: ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model used when a request carries no override."""
        ...

    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    async def invoke(self, envelope: RequestEnvelope) -> RawProviderResult:
        """Send one request.

        Raises:
            ProviderCallFailedError: on any network, auth, timeout or
                malformed-response condition.  The message never contains
                the credential.
        """
        ...

    def credentials(self) -> tuple[str, ...]:
        """Secret values this client holds, for redaction only."""
        return ()

    async def aclose(self) -> None:  # noqa: B027
        """Release pooled connections."""


# ═══════════════════════════════════════════════════════════════
#  Event log port
# ═══════════════════════════════════════════════════════════════
class EventLogPort(ABC):
    """Append-only audit sink owned by the persistence layer."""

    @abstractmethod
    async def append(
        self,
        event_type: str,
        payload: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> None: ...
