from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.core.exceptions import DomainError
from modules.customers.dtos import CustomerSpecDTO
from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.customers.services import CustomerService
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository

# Status path each seeded order walks along, starting from Pending.
_LIFECYCLES = [
    [],
    [OrderStatus.APPROVED],
    [OrderStatus.APPROVED, OrderStatus.SHIPPED],
    [OrderStatus.APPROVED, OrderStatus.SHIPPED, OrderStatus.DELIVERED],
    [OrderStatus.CANCELLED],
]


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=30)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        staff, users_created = self._seed_users()
        customers = self._seed_customers()
        products = self._seed_products()
        orders_created = self._seed_orders(staff, customers, products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"customers={len(customers)}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self):
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", "admin@example.com", "admin123")
            created += 1
        if not User.objects.filter(username="manager").exists():
            User.objects.create_user(
                "manager", "manager@example.com", "manager123", is_staff=True
            )
            created += 1
        if not User.objects.filter(username="customer").exists():
            User.objects.create_user("customer", "customer@example.com", "customer123")
            created += 1
        return User.objects.get(username="manager"), created

    def _seed_customers(self) -> list[Customer]:
        self.stdout.write("Creating customers...")
        customers: list[Customer] = []
        seed_customers = [
            ("Ana Souza", "ana@example.com", "+1 555 0101"),
            ("Bruno Lima", "bruno@example.com", "+1 555 0102"),
            ("Carla Mendes", "carla@example.com", "+1 555 0103"),
            ("Daniel Costa", "daniel@example.com", ""),
            ("Helena Ferreira", "helena@example.com", "+1 555 0105"),
        ]
        for name, email, phone in seed_customers:
            customer, _ = Customer.objects.get_or_create(
                email=email,
                defaults={
                    "name": name,
                    "phone": phone,
                    "address": f"{random.randint(1, 999)} Main Street",
                },
            )
            customers.append(customer)
        self.stdout.write(self.style.SUCCESS("Creating customers... Done!"))
        return customers

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            ("ELEC-001", 'Monitor 27"', "Electronics", Decimal("299.90")),
            ("ELEC-002", "Mechanical Keyboard", "Electronics", Decimal("89.90")),
            ("ELEC-003", "Gaming Mouse", "Electronics", Decimal("49.90")),
            ("ELEC-004", "Headset", "Electronics", Decimal("59.90")),
            ("FURN-001", "Office Desk", "Furniture", Decimal("199.00")),
            ("FURN-002", "Ergonomic Chair", "Furniture", Decimal("349.00")),
            ("OFF-001", "A4 Paper", "Office", Decimal("5.90")),
            ("OFF-002", "Blue Pen", "Office", Decimal("0.90")),
            ("OFF-003", "Notebook", "Office", Decimal("3.90")),
            ("OFF-004", "Stapler", "Office", Decimal("7.90")),
        ]
        for sku, name, category, price in catalog:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "category": category,
                    "price": price,
                    "quantity": random.randint(10, 200),
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, staff, customers, products, count: int) -> int:
        self.stdout.write("Creating orders...")
        if not customers or not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no customers/products)."))
            return 0

        service = OrderService(
            order_repository=OrderDjangoRepository(),
            customer_service=CustomerService(CustomerDjangoRepository()),
            product_repository=ProductDjangoRepository(),
        )
        orders_created = 0
        for i in range(count):
            customer = random.choice(customers)
            lines = random.sample(products, k=random.randint(1, 3))
            dto = CreateOrderDTO(
                items=[
                    CreateOrderItemDTO(product_id=product.id, quantity=random.randint(1, 3))
                    for product in lines
                ],
                customer=CustomerSpecDTO.by_id(customer.id),
                payment_method=random.choice(PaymentMethod.values),
                notes=f"Seed order {i + 1}",
                idempotency_key=f"seed-order-{i + 1}",
            )
            try:
                order = service.create_order(dto, staff)
                for target in random.choice(_LIFECYCLES):
                    service.transition(
                        order.id,
                        target,
                        staff,
                        tracking_number=f"TRK{random.randint(100000, 999999)}"
                        if target == OrderStatus.SHIPPED
                        else None,
                    )
            except DomainError as exc:
                self.stdout.write(self.style.WARNING(f"Skipped seed order {i + 1}: {exc}"))
                continue
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
