"""Order status state machine.

Pure functions over the ``VALID_TRANSITIONS`` table with no ORM access, so
every edge of the lifecycle can be verified in isolation.  The service
layer asks ``plan_transition`` what a requested status change means and
applies the resulting ``TransitionPlan``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from modules.orders.constants import TERMINAL_STATES, VALID_TRANSITIONS, OrderStatus
from modules.orders.exceptions import (
    InvalidStatus,
    InvalidTransition,
    MissingTrackingNumber,
)


@dataclass(frozen=True)
class TransitionPlan:
    """What applying a requested status means for an order."""

    from_status: str
    to_status: str
    is_status_change: bool
    notify_customer: bool
    attach_invoice: bool


def allowed_targets(status: str) -> frozenset[str]:
    return VALID_TRANSITIONS.get(status, frozenset())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in allowed_targets(from_status)


def plan_transition(
    current: str,
    target: str,
    tracking_number: Optional[str] = None,
) -> TransitionPlan:
    """Validate *target* against *current* and decide the side effects.

    Same-status requests are metadata edits: no history entry and no side
    effects.  Shipping requires a tracking number supplied with the request;
    that check runs before the graph check, so asking a Pending order to ship
    without one reports the missing tracking number.

    Raises:
        InvalidStatus: *target* is not an order status.
        MissingTrackingNumber: *target* is Shipped and no tracking number given.
        InvalidTransition: the graph has no edge from *current* to *target*.
    """
    if target not in OrderStatus.values:
        raise InvalidStatus(f"Unknown order status {target!r}.")

    if target == current:
        return TransitionPlan(
            from_status=current,
            to_status=target,
            is_status_change=False,
            notify_customer=False,
            attach_invoice=False,
        )

    if target == OrderStatus.SHIPPED and not (tracking_number or "").strip():
        raise MissingTrackingNumber(
            "A tracking number is required to mark an order as Shipped."
        )

    if not can_transition(current, target):
        raise InvalidTransition(current, target, allowed_targets(current))

    return TransitionPlan(
        from_status=current,
        to_status=target,
        is_status_change=True,
        notify_customer=True,
        attach_invoice=target == OrderStatus.DELIVERED,
    )
