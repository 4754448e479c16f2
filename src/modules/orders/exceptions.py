"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
``modules.core.exceptions.api_exception_handler`` turns them into HTTP
responses; views never catch them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from rest_framework import status

from modules.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class OrderNotFound(NotFoundError):
    """The requested order does not exist."""

    code = "order_not_found"


class EmptyCart(ValidationError):
    """An order must contain at least one line item."""

    code = "empty_cart"


class TotalMismatch(ValidationError):
    """The caller's total disagrees with the sum of the line items."""

    code = "total_mismatch"

    def __init__(self, supplied: Decimal, computed: Decimal) -> None:
        super().__init__(
            f"Order total {supplied} does not match the computed total {computed}."
        )
        self.supplied = supplied
        self.computed = computed


class InvalidStatus(ValidationError):
    """The requested status is not one of the known order statuses."""

    code = "invalid_status"


class InvalidPaymentDetails(ValidationError):
    """Payment status or method is not one of the accepted values."""

    code = "invalid_payment_details"


class InvalidTransition(ConflictError):
    """The status graph does not allow moving between the two statuses."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, allowed: Iterable[str]) -> None:
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = frozenset(allowed)
        allowed_text = ", ".join(sorted(self.allowed)) or "none (terminal status)"
        super().__init__(
            f"Cannot transition from {from_status} to {to_status}. "
            f"Allowed: {allowed_text}."
        )


class MissingTrackingNumber(ConflictError):
    """Shipping an order requires a tracking number in the same request."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "missing_tracking_number"


class CustomerRequired(ValidationError):
    """Staff must name the customer an order is placed for."""

    code = "customer_required"


class OrderAccessDenied(AuthorizationError):
    """Customers may only read their own orders."""

    code = "order_access_denied"
