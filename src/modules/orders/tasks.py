"""Asynchronous tasks of the orders module."""

from __future__ import annotations

import structlog
from celery import shared_task

from modules.notifications.dispatcher import SideEffectDispatcher
from modules.orders.repositories.django_repository import OrderDjangoRepository

logger = structlog.get_logger(__name__)


@shared_task(name="orders.dispatch_status_side_effects")
def dispatch_status_side_effects(
    order_id: str,
    previous_status: str,
    new_status: str,
    attach_invoice: bool = False,
) -> bool:
    """Notify the customer about a committed status change."""
    order = OrderDjangoRepository().get_by_id(order_id)
    if order is None:
        logger.warning("order.side_effects_skipped", order_id=order_id, reason="not_found")
        return False
    return SideEffectDispatcher.from_settings().dispatch(
        order,
        previous_status=previous_status,
        new_status=new_status,
        attach_invoice=attach_invoice,
    )
