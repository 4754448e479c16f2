"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order moves to a different status.

    Published on the event bus only after the transaction that recorded the
    change commits.
    """

    previous_status: str = ""
    new_status: str = ""
    attach_invoice: bool = False
