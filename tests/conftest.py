from decimal import Decimal
from itertools import count

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.customers.models import Customer
from modules.products.models import Product

User = get_user_model()

_sku_sequence = count(1)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="manager",
        email="manager@example.com",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture()
def customer_user():
    return User.objects.create_user(
        username="alice",
        email="alice@example.com",
        password="testpass123",
        first_name="Alice",
        last_name="Doe",
    )


@pytest.fixture()
def other_customer_user():
    return User.objects.create_user(
        username="bob",
        email="bob@example.com",
        password="testpass123",
    )


@pytest.fixture()
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture()
def customer_client(customer_user):
    client = APIClient()
    client.force_authenticate(user=customer_user)
    return client


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    """Factory creating products with a unique SKU."""

    def _make(name="Widget", price="10.00", quantity=10, category="General"):
        return Product.objects.create(
            sku=f"SKU-{next(_sku_sequence):05d}",
            name=name,
            category=category,
            price=Decimal(price),
            quantity=quantity,
        )

    return _make


@pytest.fixture()
def customer():
    return Customer.objects.create(
        name="Carol Customer",
        email="carol@example.com",
        phone="+1 555 0100",
        address="1 Main Street",
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    from modules.customers.repositories.django_repository import CustomerDjangoRepository
    from modules.customers.services import CustomerService
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.orders.services import OrderService
    from modules.products.repositories.django_repository import ProductDjangoRepository

    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_service=CustomerService(CustomerDjangoRepository()),
        product_repository=ProductDjangoRepository(),
    )


@pytest.fixture()
def make_order(order_service, staff_user, customer, make_product):
    """Factory placing a Pending order for ``customer`` through the service."""
    from modules.customers.dtos import CustomerSpecDTO
    from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO

    def _make(*lines, owner=None, **kwargs):
        if not lines:
            lines = ((make_product(name="Gadget", price="12.50", quantity=10), 2),)
        dto = CreateOrderDTO(
            items=[
                CreateOrderItemDTO(product_id=product.id, quantity=quantity)
                for product, quantity in lines
            ],
            customer=CustomerSpecDTO.by_id((owner or customer).id),
            **kwargs,
        )
        return order_service.create_order(dto, staff_user)

    return _make
