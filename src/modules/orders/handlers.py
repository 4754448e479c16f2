"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    """Queue the customer notification for a committed status change.

    Enqueue failures are logged, never raised.
    """

    def handle(self, event: OrderStatusChanged) -> None:
        from modules.orders.tasks import dispatch_status_side_effects

        log = logger.bind(
            order_id=str(event.aggregate_id),
            previous_status=event.previous_status,
            new_status=event.new_status,
        )
        try:
            dispatch_status_side_effects.delay(
                order_id=str(event.aggregate_id),
                previous_status=event.previous_status,
                new_status=event.new_status,
                attach_invoice=event.attach_invoice,
            )
        except Exception:
            log.exception("order.side_effects_enqueue_failed")
            return
        log.info("order.side_effects_enqueued", attach_invoice=event.attach_invoice)


order_status_changed_handler = OrderStatusChangedHandler()
