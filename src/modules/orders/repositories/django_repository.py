"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` to ensure
the Order aggregate (Order + OrderItems + history) is persisted atomically.

Concurrency control on status updates uses ``select_for_update()``.
Domain events collected on the aggregate are handed to the event bus only
once the surrounding transaction commits, so a rolled-back change never
notifies anybody.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet

from modules.orders.constants import INITIAL_HISTORY_NOTE, OrderStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def __init__(self, bus: Any = None) -> None:
        self._bus = bus or event_bus

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        actor = data.get("actor")
        order = Order(
            customer=data["customer"],
            customer_name=data["customer_name"],
            customer_email=data.get("customer_email", ""),
            customer_phone=data.get("customer_phone", ""),
            customer_address=data.get("customer_address", ""),
            total_amount=data["total_amount"],
            notes=data.get("notes", ""),
            idempotency_key=data.get("idempotency_key"),
            created_by=actor,
            updated_by=actor,
        )
        if data.get("payment_method"):
            order.payment_method = data["payment_method"]
        order.save()

        items = data.get("items", [])
        for item_data in items:
            OrderItem(
                order=order,
                product_id=item_data["product_id"],
                product_name=item_data["product_name"],
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
            ).save()

        self.add_history(
            order_id=order.id,
            status=OrderStatus.PENDING,
            previous_status=None,
            actor=actor,
            notes=INITIAL_HISTORY_NOTE,
        )

        log = logger.bind(order_id=str(order.id), item_count=len(items))
        log.info("order.persisted", order_number=order.order_number)
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _base_queryset(self) -> QuerySet:
        return Order.objects.select_related("customer").prefetch_related(
            "items__product", "status_history"
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Uses ``select_related`` for the customer FK (single JOIN) and
        ``prefetch_related`` for items and status history (separate batched
        queries).  Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside a transaction; the lock is held until it ends.
        """
        try:
            return (
                Order.objects.select_for_update()
                .select_related("customer")
                .prefetch_related("items", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        """Return a lazy queryset so the API layer can filter and paginate it.

        Supported filter keys are any ORM lookups, e.g. ``status``,
        ``customer_id``, ``customer__user``, ``created_at__range``.
        """
        queryset = self._base_queryset().order_by("-created_at", "-id")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self._base_queryset().filter(idempotency_key=key).first()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and schedule its domain events for after commit."""
        entity.save()

        events = entity.pull_domain_events()
        for event in events:
            transaction.on_commit(partial(self._bus.publish, event))

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    @transaction.atomic
    def add_history(
        self,
        order_id: Any,
        status: str,
        previous_status: Optional[str] = None,
        actor: Any = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory(
            order_id=order_id,
            previous_status=previous_status,
            status=status,
            actor=actor,
            notes=notes or "",
        )
        history.save()

        logger.info(
            "order.history_added",
            order_id=str(order_id),
            previous_status=previous_status,
            status=status,
        )
        return history
