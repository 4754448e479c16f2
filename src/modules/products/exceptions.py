"""Inventory domain exceptions.

Raised by ``InventoryLedger``.  When raised from ``reserve_all`` the
``index`` attribute holds the position of the failing line in the caller's
item list; every reservation made earlier in the same call has already been
rolled back.
"""

from __future__ import annotations

from typing import Any, Optional

from modules.core.exceptions import ConflictError, NotFoundError, ValidationError


class ProductNotFound(NotFoundError):
    """A referenced product does not exist."""

    code = "product_not_found"

    def __init__(self, product_id: Any) -> None:
        super().__init__(f"Product {product_id} not found.")
        self.product_id = product_id
        self.index: Optional[int] = None


class InsufficientStock(ConflictError):
    """Not enough stock to reserve the requested quantity."""

    code = "insufficient_stock"

    def __init__(
        self,
        product_id: Any,
        available: int,
        requested: int,
        product_name: str = "",
    ) -> None:
        label = product_name or str(product_id)
        super().__init__(
            f"Not enough stock for {label}: requested {requested}, "
            f"available {available}."
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested
        self.index: Optional[int] = None


class InvalidStockQuantity(ValidationError):
    """Reservation and restoration quantities must be positive."""

    code = "invalid_quantity"
