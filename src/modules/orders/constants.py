"""Order domain constants.

Defines status/payment choices and the order status transition table.
"""

from decimal import Decimal

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    APPROVED = "Approved", "Approved"
    SHIPPED = "Shipped", "Shipped"
    DELIVERED = "Delivered", "Delivered"
    CANCELLED = "Cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    UNPAID = "Unpaid", "Unpaid"
    PAID = "Paid", "Paid"
    PARTIALLY_PAID = "PartiallyPaid", "Partially paid"
    REFUNDED = "Refunded", "Refunded"


class PaymentMethod(models.TextChoices):
    CREDIT_CARD = "CreditCard", "Credit card"
    CASH = "Cash", "Cash"
    BANK_TRANSFER = "BankTransfer", "Bank transfer"
    OTHER = "Other", "Other"


VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.APPROVED, OrderStatus.CANCELLED}),
    OrderStatus.APPROVED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES: frozenset[str] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

INITIAL_HISTORY_NOTE = "Order created"

DEFAULT_TOTAL_TOLERANCE = Decimal("0.01")

ORDER_NUMBER_MAX_RETRIES = 5
