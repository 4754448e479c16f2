"""Unit tests for OrderService against the Django repositories.

Covers:
- Order creation: stock reservation, price/customer snapshots, history.
- All-or-nothing intake: nothing stays reserved when a line fails.
- Customer spec resolution (self / by_id / by_info) and staff rules.
- Advisory total check.
- Idempotency key replay.
- Status transitions, metadata edits and history recording.
- Optional stock restoration on cancellation.
- Payment updates.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from modules.customers.dtos import CustomerInfoDTO, CustomerSpecDTO
from modules.customers.exceptions import (
    CustomerNotFound,
    CustomerSpecNotAllowed,
    InvalidCustomerInfo,
)
from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.customers.services import CustomerService
from modules.orders.constants import (
    INITIAL_HISTORY_NOTE,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.exceptions import (
    CustomerRequired,
    EmptyCart,
    InvalidPaymentDetails,
    InvalidStatus,
    InvalidTransition,
    MissingTrackingNumber,
    OrderAccessDenied,
    OrderNotFound,
    TotalMismatch,
)
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _build_service(**kwargs) -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_service=CustomerService(CustomerDjangoRepository()),
        product_repository=ProductDjangoRepository(),
        **kwargs,
    )


@pytest.fixture()
def service():
    return _build_service()


@pytest.fixture()
def product_p(make_product):
    return make_product(name="Product P", price="10.00", quantity=5)


@pytest.fixture()
def product_q(make_product):
    return make_product(name="Product Q", price="2.50", quantity=10)


def _dto(*lines, **kwargs) -> CreateOrderDTO:
    return CreateOrderDTO(
        items=[
            CreateOrderItemDTO(product_id=product.id, quantity=quantity)
            for product, quantity in lines
        ],
        **kwargs,
    )


def _quantity(product) -> int:
    product.refresh_from_db(fields=["quantity"])
    return product.quantity


@pytest.fixture()
def pending_order(service, customer, staff_user, product_p):
    return service.create_order(
        _dto((product_p, 1), customer=CustomerSpecDTO.by_id(customer.id)),
        staff_user,
    )


def _advance(service, order, actor, *statuses):
    for status in statuses:
        tracking = "TRK-123" if status == OrderStatus.SHIPPED else None
        order = service.transition(order.id, status, actor, tracking_number=tracking)
    return order


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_reserves_stock_and_creates_pending_order(self, service, customer_user, product_p):
        order = service.create_order(_dto((product_p, 3)), customer_user)

        assert _quantity(product_p) == 2
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.UNPAID
        assert order.payment_method == PaymentMethod.OTHER
        assert order.order_number.startswith("ORD-")

    def test_snapshots_line_items_and_total(self, service, customer_user, product_p, product_q):
        order = service.create_order(_dto((product_p, 2), (product_q, 4)), customer_user)

        items = {item.product_id: item for item in order.items.all()}
        assert items[product_p.id].product_name == "Product P"
        assert items[product_p.id].unit_price == Decimal("10.00")
        assert items[product_p.id].subtotal == Decimal("20.00")
        assert items[product_q.id].subtotal == Decimal("10.00")
        assert order.total_amount == Decimal("30.00")

    def test_later_price_change_does_not_touch_order(self, service, customer_user, product_p):
        order = service.create_order(_dto((product_p, 1)), customer_user)
        product_p.price = Decimal("99.00")
        product_p.name = "Renamed"
        product_p.save()

        order = Order.objects.get(id=order.id)
        item = order.items.get()
        assert item.unit_price == Decimal("10.00")
        assert item.product_name == "Product P"
        assert order.total_amount == Decimal("10.00")

    def test_records_initial_history(self, service, customer_user, product_p):
        order = service.create_order(_dto((product_p, 1)), customer_user)

        history = list(order.status_history.all())
        assert len(history) == 1
        assert history[0].previous_status is None
        assert history[0].status == OrderStatus.PENDING
        assert history[0].notes == INITIAL_HISTORY_NOTE
        assert history[0].actor_id == customer_user.pk

    def test_records_creator(self, service, customer_user, product_p):
        order = service.create_order(_dto((product_p, 1)), customer_user)
        assert order.created_by_id == customer_user.pk
        assert order.updated_by_id == customer_user.pk

    def test_empty_cart(self, service, customer_user):
        with pytest.raises(EmptyCart):
            service.create_order(CreateOrderDTO(items=[]), customer_user)
        assert Order.objects.count() == 0

    def test_insufficient_stock_reserves_nothing(self, service, customer_user, product_p, product_q):
        """P is short and Q plentiful: neither quantity moves."""
        product_p.quantity = 2
        product_p.save()

        with pytest.raises(InsufficientStock) as exc_info:
            service.create_order(_dto((product_p, 3), (product_q, 1)), customer_user)

        assert exc_info.value.product_id == product_p.id
        assert exc_info.value.available == 2
        assert exc_info.value.requested == 3
        assert exc_info.value.index == 0
        assert "Product P" in exc_info.value.message
        assert _quantity(product_p) == 2
        assert _quantity(product_q) == 10
        assert Order.objects.count() == 0

    def test_unknown_product(self, service, customer_user, product_p):
        missing = uuid4()
        dto = CreateOrderDTO(
            items=[
                CreateOrderItemDTO(product_id=product_p.id, quantity=1),
                CreateOrderItemDTO(product_id=missing, quantity=1),
            ]
        )
        with pytest.raises(ProductNotFound) as exc_info:
            service.create_order(dto, customer_user)
        assert exc_info.value.product_id == missing
        assert exc_info.value.index == 1
        assert _quantity(product_p) == 5

    def test_malformed_product_reference(self, service, customer_user, product_p):
        dto = CreateOrderDTO(
            items=[
                CreateOrderItemDTO(product_id=product_p.id, quantity=1),
                CreateOrderItemDTO(product_id="not-a-uuid", quantity=1),
            ]
        )
        with pytest.raises(ProductNotFound) as exc_info:
            service.create_order(dto, customer_user)
        assert exc_info.value.product_id == "not-a-uuid"
        assert exc_info.value.index == 1
        assert _quantity(product_p) == 5

    def test_repeated_products_merge_into_one_line(self, service, customer_user, product_p):
        order = service.create_order(_dto((product_p, 1), (product_p, 2)), customer_user)

        items = list(order.items.all())
        assert len(items) == 1
        assert items[0].quantity == 3
        assert order.total_amount == Decimal("30.00")
        assert _quantity(product_p) == 2

    def test_repeated_products_short_reports_first_position(
        self, service, customer_user, product_p, product_q
    ):
        with pytest.raises(InsufficientStock) as exc_info:
            service.create_order(
                _dto((product_q, 1), (product_p, 3), (product_q, 1), (product_p, 3)),
                customer_user,
            )
        assert exc_info.value.requested == 6
        assert exc_info.value.index == 1
        assert _quantity(product_p) == 5
        assert _quantity(product_q) == 10

    def test_total_within_tolerance_is_accepted(self, service, customer_user, product_p):
        order = service.create_order(
            _dto((product_p, 3), total_amount=Decimal("30.01")), customer_user
        )
        assert order.total_amount == Decimal("30.00")

    def test_total_mismatch_reserves_nothing(self, service, customer_user, product_p):
        with pytest.raises(TotalMismatch) as exc_info:
            service.create_order(
                _dto((product_p, 3), total_amount=Decimal("25.00")), customer_user
            )
        assert exc_info.value.computed == Decimal("30.00")
        assert _quantity(product_p) == 5

    def test_configurable_tolerance(self, customer_user, product_p):
        service = _build_service(total_tolerance=Decimal("5.00"))
        order = service.create_order(
            _dto((product_p, 3), total_amount=Decimal("26.00")), customer_user
        )
        assert order.total_amount == Decimal("30.00")

    def test_idempotency_key_returns_existing_order(self, service, customer_user, product_p):
        first = service.create_order(
            _dto((product_p, 1), idempotency_key="key-1"), customer_user
        )
        second = service.create_order(
            _dto((product_p, 1), idempotency_key="key-1"), customer_user
        )

        assert first.id == second.id
        assert Order.objects.count() == 1
        assert _quantity(product_p) == 4

    def test_payment_method_and_notes(self, service, customer_user, product_p):
        order = service.create_order(
            _dto((product_p, 1), payment_method=PaymentMethod.CASH, notes="Leave at door"),
            customer_user,
        )
        assert order.payment_method == PaymentMethod.CASH
        assert order.notes == "Leave at door"


class TestCustomerResolution:
    def test_self_creates_customer_from_account(self, service, customer_user, product_p):
        order = service.create_order(_dto((product_p, 1)), customer_user)

        customer = Customer.objects.get(user=customer_user)
        assert order.customer_id == customer.id
        assert customer.email == "alice@example.com"
        assert customer.name == "Alice Doe"
        assert order.customer_name == "Alice Doe"
        assert order.customer_email == "alice@example.com"

    def test_self_reuses_linked_customer(self, service, customer_user, product_p):
        first = service.create_order(_dto((product_p, 1)), customer_user)
        second = service.create_order(_dto((product_p, 1)), customer_user)
        assert first.customer_id == second.customer_id
        assert Customer.objects.count() == 1

    def test_self_links_existing_customer_with_same_email(self, service, customer_user, product_p):
        existing = Customer.objects.create(name="Alice", email="ALICE@example.com")
        order = service.create_order(_dto((product_p, 1)), customer_user)

        existing.refresh_from_db()
        assert order.customer_id == existing.id
        assert existing.user_id == customer_user.pk

    def test_self_without_email(self, service, customer_user, product_p):
        customer_user.email = ""
        customer_user.save()
        with pytest.raises(InvalidCustomerInfo):
            service.create_order(_dto((product_p, 1)), customer_user)
        assert _quantity(product_p) == 5

    def test_staff_by_id(self, service, staff_user, customer, product_p):
        order = service.create_order(
            _dto((product_p, 1), customer=CustomerSpecDTO.by_id(customer.id)), staff_user
        )
        assert order.customer_id == customer.id
        assert order.customer_phone == "+1 555 0100"
        assert order.customer_address == "1 Main Street"

    def test_staff_by_unknown_id(self, service, staff_user, product_p):
        with pytest.raises(CustomerNotFound):
            service.create_order(
                _dto((product_p, 1), customer=CustomerSpecDTO.by_id(uuid4())), staff_user
            )
        assert _quantity(product_p) == 5

    def test_staff_by_info_matches_email_case_insensitively(
        self, service, staff_user, customer, product_p
    ):
        spec = CustomerSpecDTO.by_info(
            CustomerInfoDTO(name="Carol", email="CAROL@example.com")
        )
        order = service.create_order(_dto((product_p, 1), customer=spec), staff_user)
        assert order.customer_id == customer.id
        assert Customer.objects.count() == 1

    def test_staff_by_info_provisions_customer(self, service, staff_user, product_p):
        spec = CustomerSpecDTO.by_info(
            CustomerInfoDTO(name="Dave", email="dave@example.com", phone="123")
        )
        order = service.create_order(_dto((product_p, 1), customer=spec), staff_user)

        customer = Customer.objects.get(email="dave@example.com")
        assert order.customer_id == customer.id
        assert customer.user_id is None
        assert order.customer_phone == "123"

    @pytest.mark.parametrize(
        "info",
        [
            CustomerInfoDTO(email="nameless@example.com"),
            CustomerInfoDTO(name="No Email"),
        ],
    )
    def test_staff_by_info_requires_name_and_email(self, service, staff_user, product_p, info):
        with pytest.raises(InvalidCustomerInfo):
            service.create_order(
                _dto((product_p, 1), customer=CustomerSpecDTO.by_info(info)), staff_user
            )
        assert _quantity(product_p) == 5

    def test_staff_must_name_a_customer(self, service, staff_user, product_p):
        with pytest.raises(CustomerRequired):
            service.create_order(_dto((product_p, 1)), staff_user)

    def test_customer_cannot_order_for_someone_else(
        self, service, customer_user, customer, product_p
    ):
        with pytest.raises(CustomerSpecNotAllowed):
            service.create_order(
                _dto((product_p, 1), customer=CustomerSpecDTO.by_id(customer.id)),
                customer_user,
            )
        assert _quantity(product_p) == 5


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransition:
    def test_full_lifecycle_appends_history(self, service, staff_user, pending_order):
        order = _advance(
            service,
            pending_order,
            staff_user,
            OrderStatus.APPROVED,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )

        history = list(order.status_history.all())
        assert [entry.status for entry in history] == [
            OrderStatus.PENDING,
            OrderStatus.APPROVED,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]
        assert [entry.previous_status for entry in history] == [
            None,
            OrderStatus.PENDING,
            OrderStatus.APPROVED,
            OrderStatus.SHIPPED,
        ]
        assert history[-1].status == order.status
        assert history[-1].actor_id == staff_user.pk
        assert order.tracking_number == "TRK-123"
        assert order.updated_by_id == staff_user.pk

    def test_history_notes(self, service, staff_user, pending_order):
        order = service.transition(
            pending_order.id, OrderStatus.CANCELLED, staff_user, notes="Customer asked"
        )
        assert order.status_history.last().notes == "Customer asked"

    def test_shipping_without_tracking_from_pending(self, service, staff_user, pending_order):
        """The missing tracking number is reported before the graph check."""
        with pytest.raises(MissingTrackingNumber):
            service.transition(pending_order.id, OrderStatus.SHIPPED, staff_user)
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.status_history.count() == 1

    def test_approved_cannot_jump_to_delivered(self, service, staff_user, pending_order):
        """Approved must ship before it can be delivered."""
        _advance(service, pending_order, staff_user, OrderStatus.APPROVED)
        with pytest.raises(InvalidTransition) as exc_info:
            service.transition(pending_order.id, OrderStatus.DELIVERED, staff_user)
        assert exc_info.value.from_status == OrderStatus.APPROVED
        assert exc_info.value.to_status == OrderStatus.DELIVERED
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.APPROVED

    def test_terminal_order_cannot_move(self, service, staff_user, pending_order):
        _advance(service, pending_order, staff_user, OrderStatus.CANCELLED)
        with pytest.raises(InvalidTransition):
            service.transition(pending_order.id, OrderStatus.APPROVED, staff_user)

    def test_unknown_status(self, service, staff_user, pending_order):
        with pytest.raises(InvalidStatus):
            service.transition(pending_order.id, "Lost", staff_user)

    def test_unknown_order(self, service, staff_user):
        with pytest.raises(OrderNotFound):
            service.transition(uuid4(), OrderStatus.APPROVED, staff_user)

    def test_same_status_edits_metadata_only(self, service, staff_user, pending_order):
        order = _advance(
            service, pending_order, staff_user, OrderStatus.APPROVED, OrderStatus.SHIPPED
        )
        history_count = order.status_history.count()

        order = service.transition(
            order.id,
            OrderStatus.SHIPPED,
            staff_user,
            notes="Carrier changed",
            tracking_number="NEW-TRK",
            estimated_delivery=date(2030, 1, 15),
        )

        assert order.status == OrderStatus.SHIPPED
        assert order.tracking_number == "NEW-TRK"
        assert order.estimated_delivery == date(2030, 1, 15)
        assert "Carrier changed" in order.notes
        assert order.status_history.count() == history_count

    def test_cancel_keeps_stock_by_default(self, service, staff_user, pending_order, product_p):
        assert _quantity(product_p) == 4
        service.transition(pending_order.id, OrderStatus.CANCELLED, staff_user)
        assert _quantity(product_p) == 4

    def test_cancel_restores_stock_when_enabled(
        self, staff_user, customer, product_p, product_q
    ):
        service = _build_service(restore_stock_on_cancel=True)
        order = service.create_order(
            _dto(
                (product_p, 2),
                (product_q, 3),
                customer=CustomerSpecDTO.by_id(customer.id),
            ),
            staff_user,
        )
        assert _quantity(product_p) == 3

        service.transition(order.id, OrderStatus.CANCELLED, staff_user)

        assert _quantity(product_p) == 5
        assert _quantity(product_q) == 10

    def test_cancel_restore_setting(self, settings, staff_user, pending_order, product_p):
        settings.ORDERS_RESTORE_STOCK_ON_CANCEL = True
        _build_service().transition(pending_order.id, OrderStatus.CANCELLED, staff_user)
        assert _quantity(product_p) == 5


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------


class TestUpdatePayment:
    def test_sets_payment_fields_and_appends_note(self, service, staff_user, pending_order):
        order = service.update_payment(
            pending_order.id,
            PaymentStatus.PAID,
            PaymentMethod.CREDIT_CARD,
            staff_user,
            notes="Paid at counter",
        )

        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_method == PaymentMethod.CREDIT_CARD
        assert order.notes.endswith("] Paid at counter")
        assert order.notes.startswith("[")
        assert order.updated_by_id == staff_user.pk
        assert order.status == OrderStatus.PENDING
        assert OrderStatusHistory.objects.filter(order=order).count() == 1

    def test_notes_accumulate(self, service, staff_user, pending_order):
        service.update_payment(
            pending_order.id, PaymentStatus.PARTIALLY_PAID, PaymentMethod.CASH, staff_user, "first"
        )
        order = service.update_payment(
            pending_order.id, PaymentStatus.PAID, PaymentMethod.CASH, staff_user, "second"
        )
        lines = order.notes.splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("first")
        assert lines[1].endswith("second")

    @pytest.mark.parametrize(
        "payment_status,payment_method",
        [("Free", PaymentMethod.CASH), (PaymentStatus.PAID, "Barter")],
    )
    def test_rejects_unknown_values(
        self, service, staff_user, pending_order, payment_status, payment_method
    ):
        with pytest.raises(InvalidPaymentDetails):
            service.update_payment(
                pending_order.id, payment_status, payment_method, staff_user
            )

    def test_unknown_order(self, service, staff_user):
        with pytest.raises(OrderNotFound):
            service.update_payment(
                uuid4(), PaymentStatus.PAID, PaymentMethod.CASH, staff_user
            )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_owner_can_read_order(self, service, customer_user, product_p):
        order = service.create_order(_dto((product_p, 1)), customer_user)
        assert service.get_order(str(order.id), customer_user).id == order.id

    def test_other_customer_cannot_read_order(
        self, service, customer_user, other_customer_user, product_p
    ):
        order = service.create_order(_dto((product_p, 1)), customer_user)
        with pytest.raises(OrderAccessDenied):
            service.get_order(str(order.id), other_customer_user)

    def test_staff_can_read_any_order(self, service, customer_user, staff_user, product_p):
        order = service.create_order(_dto((product_p, 1)), customer_user)
        assert service.get_order(str(order.id), staff_user).id == order.id

    def test_missing_order(self, service, staff_user):
        with pytest.raises(OrderNotFound):
            service.get_order(str(uuid4()), staff_user)

    def test_list_is_scoped_for_customers(
        self, service, customer_user, other_customer_user, staff_user, product_p
    ):
        mine = service.create_order(_dto((product_p, 1)), customer_user)
        service.create_order(_dto((product_p, 1)), other_customer_user)

        assert [o.id for o in service.list_orders(customer_user)] == [mine.id]
        assert len(list(service.list_orders(staff_user))) == 2
