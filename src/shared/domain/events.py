"""Domain event primitives.

Aggregates record events while a use case runs.  The repository pulls them
off the aggregate when it is saved and hands them to the event bus once the
surrounding transaction commits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Immutable fact about an aggregate."""

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_name(self) -> str:
        return type(self).__name__


class DomainEventMixin:
    """Pending-event buffer for aggregate roots (kept on the instance only)."""

    def add_domain_event(self, event: DomainEvent) -> None:
        self.__dict__.setdefault("_pending_events", []).append(event)

    @property
    def domain_events(self) -> List[DomainEvent]:
        return list(self.__dict__.get("_pending_events", ()))

    def pull_domain_events(self) -> List[DomainEvent]:
        """Return the pending events and empty the buffer."""
        return self.__dict__.pop("_pending_events", [])

    def clear_domain_events(self) -> None:
        self.__dict__.pop("_pending_events", None)
