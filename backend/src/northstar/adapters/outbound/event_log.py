"""Event-log adapters for AI routing audit events.

``StructlogEventLog`` is the default sink: every audit record becomes one
structured log line.  ``InMemoryEventLog`` keeps records in a bounded list
for tests and local development.  A persistence-backed sink only needs to
implement ``EventLogPort.append``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from northstar.ports.outbound import EventLogPort


@dataclass(frozen=True)
class EventRecord:
    event_type: str
    payload: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)


class InMemoryEventLog(EventLogPort):
    """Bounded in-memory audit log."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: deque[EventRecord] = deque(maxlen=max_records)

    async def append(
        self,
        event_type: str,
        payload: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self._records.append(EventRecord(event_type, dict(payload), dict(metadata or {})))

    @property
    def records(self) -> list[EventRecord]:
        return list(self._records)

    def of_type(self, event_type: str) -> list[EventRecord]:
        return [r for r in self._records if r.event_type == event_type]

    def clear(self) -> None:
        self._records.clear()


class StructlogEventLog(EventLogPort):
    """Writes each audit record as an ``audit_event`` log line."""

    def __init__(self, logger_name: str = "northstar.audit") -> None:
        self._log = structlog.get_logger(logger_name)

    async def append(
        self,
        event_type: str,
        payload: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self._log.info(
            "audit_event",
            audit_type=event_type,
            payload=dict(payload),
            **{f"meta_{k}": v for k, v in (metadata or {}).items()},
        )
