"""Order service layer (Use Cases).

Orchestrates order intake, the status lifecycle and payment updates.
All write operations are atomic: the service defines the unit-of-work
boundary.

Business rules enforced:
- Stock is only ever moved through ``InventoryLedger``; intake reserves
  every line or none.
- Line items snapshot product name and price; the order snapshots the
  customer's contact details.
- Status transitions are validated by ``state_machine.plan_transition``
  while the order row is locked.
- Every status change appends exactly one history record, and its side
  effects are requested only after the transaction commits.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import structlog
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction

from modules.core.exceptions import DomainError
from modules.core.permissions import is_staff_actor
from modules.customers.dtos import CustomerSpecDTO
from modules.orders.constants import (
    DEFAULT_TOTAL_TOLERANCE,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.events import OrderStatusChanged
from modules.orders.exceptions import (
    CustomerRequired,
    EmptyCart,
    InvalidPaymentDetails,
    OrderAccessDenied,
    OrderNotFound,
    TotalMismatch,
)
from modules.orders.state_machine import plan_transition
from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.ledger import InventoryLedger, StockLine

if TYPE_CHECKING:
    from modules.customers.models import Customer
    from modules.customers.services import CustomerService
    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and collaborators via constructor injection (DIP).
    ``restore_stock_on_cancel`` and ``total_tolerance`` default to the
    ``ORDERS_RESTORE_STOCK_ON_CANCEL`` / ``ORDERS_TOTAL_TOLERANCE`` settings.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_service: CustomerService,
        product_repository: IProductRepository,
        ledger: Optional[InventoryLedger] = None,
        restore_stock_on_cancel: Optional[bool] = None,
        total_tolerance: Optional[Decimal] = None,
    ) -> None:
        self._order_repo = order_repository
        self._customer_service = customer_service
        self._product_repo = product_repository
        self._ledger = ledger or InventoryLedger(product_repository)
        self._restore_stock_on_cancel = restore_stock_on_cancel
        self._total_tolerance = total_tolerance

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO, actor: Any) -> Order:
        """Create a new ``Pending`` order, reserving stock for every line.

        Steps:
        1. Return the existing order for a replayed idempotency key.
        2. Reject an empty cart.
        3. Resolve the owning customer from the customer spec.
        4. Merge repeated products, then look up each one and snapshot its
           name and price.
        5. Compare the client's total (if any) with the computed one.
        6. Reserve all lines through the ledger (all-or-nothing).
        7. Persist order, items and the initial history record; a
           persistence failure hands the reservation back before re-raising.

        Raises:
            EmptyCart: no line items.
            CustomerRequired: staff named no customer.
            CustomerNotFound / InvalidCustomerInfo / CustomerSpecNotAllowed:
                the customer spec cannot be resolved for this actor.
            ProductNotFound: a product does not exist (``index`` is set).
            TotalMismatch: client total differs by more than the tolerance.
            InsufficientStock: a line cannot be covered (``index`` is set).
        """
        log = logger.bind(
            actor_id=_actor_id(actor),
            item_count=len(dto.items),
        )
        log.info("order.creation_started")

        # 1. Idempotency check
        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        # 2. Cart
        if not dto.items:
            raise EmptyCart("Your cart is empty. Add at least one product.")

        # 3. Customer
        customer = self._resolve_customer(dto.customer, actor)
        log = log.bind(customer_id=str(customer.id))

        # 4. Products and price snapshot; repeated products collapse into one line
        quantities: Dict[str, int] = {}
        first_index: Dict[str, int] = {}
        for index, item in enumerate(dto.items):
            key = str(item.product_id)
            quantities[key] = quantities.get(key, 0) + item.quantity
            first_index.setdefault(key, index)

        products = self._product_repo.get_many(quantities)
        repo_items: List[Dict[str, Any]] = []
        total = Decimal("0.00")
        for key, quantity in quantities.items():
            product = products.get(key)
            if product is None:
                exc = ProductNotFound(dto.items[first_index[key]].product_id)
                exc.index = first_index[key]
                raise exc
            repo_items.append(
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "quantity": quantity,
                    "unit_price": product.price,
                }
            )
            total += product.price * quantity
        line_indexes = list(first_index.values())
        total = total.quantize(_CENT)

        # 5. Advisory total
        if dto.total_amount is not None:
            if abs(Decimal(dto.total_amount) - total) > self._tolerance():
                log.warning(
                    "order.total_mismatch",
                    supplied=str(dto.total_amount),
                    computed=str(total),
                )
                raise TotalMismatch(Decimal(dto.total_amount), total)

        # 6. Reserve stock
        lines = [StockLine(row["product_id"], row["quantity"]) for row in repo_items]
        try:
            reserved = self._ledger.reserve_all(lines)
        except InsufficientStock as exc:
            name = repo_items[exc.index]["product_name"] if exc.index is not None else ""
            enriched = InsufficientStock(
                exc.product_id,
                available=exc.available,
                requested=exc.requested,
                product_name=name,
            )
            enriched.index = line_indexes[exc.index] if exc.index is not None else None
            raise enriched from exc

        # 7. Persist
        try:
            with transaction.atomic():
                order = self._order_repo.create(
                    {
                        "customer": customer,
                        "customer_name": customer.name,
                        "customer_email": customer.email,
                        "customer_phone": customer.phone,
                        "customer_address": customer.address,
                        "items": repo_items,
                        "total_amount": total,
                        "payment_method": dto.payment_method,
                        "notes": dto.notes or "",
                        "idempotency_key": dto.idempotency_key,
                        "actor": _actor_or_none(actor),
                    }
                )
        except DatabaseError as exc:
            log.error("order.persist_failed", error=str(exc))
            self._ledger.restore_all(reserved)
            if isinstance(exc, IntegrityError) and dto.idempotency_key:
                existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
                if existing:
                    log.info("order.idempotency_race", order_id=str(existing.id))
                    return existing
            raise

        log.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            total_amount=str(total),
        )

        # Re-fetch with prefetch for output
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def transition(
        self,
        order_id: Any,
        target_status: str,
        actor: Any,
        notes: str = "",
        tracking_number: Optional[str] = None,
        estimated_delivery: Optional[date] = None,
    ) -> Order:
        """Move an order to *target_status* (or edit its shipping metadata).

        Acquires a row-level lock (``SELECT FOR UPDATE``) on the order before
        validating, so concurrent transitions on the same order serialise.
        A request for the current status only updates notes, tracking number
        and estimated delivery; it records no history and has no side effects.

        Raises:
            OrderNotFound: order does not exist.
            InvalidStatus: *target_status* is not an order status.
            MissingTrackingNumber: shipping without a tracking number.
            InvalidTransition: the graph has no such edge.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order.id),
            current_status=order.status,
            target_status=target_status,
            actor_id=_actor_id(actor),
        )

        try:
            plan = plan_transition(order.status, target_status, tracking_number)
        except DomainError as exc:
            log.warning("order.transition_rejected", code=exc.code)
            raise

        if tracking_number and tracking_number.strip():
            order.tracking_number = tracking_number.strip()
        if estimated_delivery is not None:
            order.estimated_delivery = estimated_delivery
        order.updated_by = _actor_or_none(actor)

        if not plan.is_status_change:
            order.append_note(notes)
            self._order_repo.save(order)
            log.info("order.metadata_updated")
            return self._order_repo.get_by_id(str(order.id)) or order

        if plan.to_status == OrderStatus.CANCELLED and self._should_restore_on_cancel():
            self._ledger.restore_all(
                [StockLine(item.product_id, item.quantity) for item in order.items.all()]
            )
            log.info("order.stock_restored_on_cancel")

        order.status = plan.to_status
        if plan.notify_customer:
            order.add_domain_event(
                OrderStatusChanged(
                    aggregate_id=order.id,
                    previous_status=plan.from_status,
                    new_status=plan.to_status,
                    attach_invoice=plan.attach_invoice,
                )
            )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=plan.to_status,
            previous_status=plan.from_status,
            actor=_actor_or_none(actor),
            notes=notes or "",
        )

        log.info("order.status_updated", new_status=plan.to_status)
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def update_payment(
        self,
        order_id: Any,
        payment_status: str,
        payment_method: str,
        actor: Any,
        notes: str = "",
    ) -> Order:
        """Record payment status and method on an order.

        Notes are appended to the order's note log with a timestamp.  No
        history record is written and no side effects are requested.

        Raises:
            InvalidPaymentDetails: unknown payment status or method.
            OrderNotFound: order does not exist.
        """
        if payment_status not in PaymentStatus.values:
            raise InvalidPaymentDetails(f"Unknown payment status {payment_status!r}.")
        if payment_method not in PaymentMethod.values:
            raise InvalidPaymentDetails(f"Unknown payment method {payment_method!r}.")

        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        order.payment_status = payment_status
        order.payment_method = payment_method
        order.append_note(notes)
        order.updated_by = _actor_or_none(actor)
        self._order_repo.save(order)

        logger.info(
            "order.payment_updated",
            order_id=str(order.id),
            payment_status=payment_status,
            payment_method=payment_method,
            actor_id=_actor_id(actor),
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str, actor: Any = None) -> Order:
        """Retrieve a single order visible to *actor*.

        Staff (or a system call with no actor) can read any order; a
        customer account only the orders it owns.

        Raises:
            OrderNotFound: if the order does not exist.
            OrderAccessDenied: the order belongs to another customer.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if actor is not None and not is_staff_actor(actor):
            if order.customer.user_id != getattr(actor, "pk", None):
                logger.warning(
                    "order.access_denied",
                    order_id=str(order.id),
                    actor_id=_actor_id(actor),
                )
                raise OrderAccessDenied("You do not have access to this order.")
        return order

    def list_orders(
        self, actor: Any = None, filters: Optional[Dict[str, Any]] = None
    ) -> Iterable[Order]:
        """Return orders visible to *actor*, optionally filtered."""
        filters = dict(filters or {})
        if actor is not None and not is_staff_actor(actor):
            filters["customer__user"] = getattr(actor, "pk", None)
        return self._order_repo.list(filters)

    def find_by_idempotency_key(self, key: Optional[str]) -> Optional[Order]:
        if not key:
            return None
        return self._order_repo.get_by_idempotency_key(key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve_customer(
        self, spec: Optional[CustomerSpecDTO], actor: Any
    ) -> Customer:
        if spec is None:
            if is_staff_actor(actor):
                raise CustomerRequired("Please specify a customer for this order.")
            spec = CustomerSpecDTO.for_self()
        return self._customer_service.resolve(spec, actor)

    def _tolerance(self) -> Decimal:
        if self._total_tolerance is not None:
            return Decimal(self._total_tolerance)
        return Decimal(
            str(getattr(settings, "ORDERS_TOTAL_TOLERANCE", DEFAULT_TOTAL_TOLERANCE))
        )

    def _should_restore_on_cancel(self) -> bool:
        if self._restore_stock_on_cancel is not None:
            return self._restore_stock_on_cancel
        return bool(getattr(settings, "ORDERS_RESTORE_STOCK_ON_CANCEL", False))


def _actor_or_none(actor: Any) -> Any:
    """Return *actor* when it is a persisted, authenticated account."""
    if actor is None or not getattr(actor, "is_authenticated", False):
        return None
    if getattr(actor, "pk", None) is None:
        return None
    return actor


def _actor_id(actor: Any) -> Optional[str]:
    pk = getattr(actor, "pk", None)
    return str(pk) if pk is not None else None
