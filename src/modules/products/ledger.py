"""Inventory ledger: the only code path allowed to move product stock.

``reserve`` is a compare-and-decrement executed by the database in a single
statement; ``restore`` is the matching atomic increment.  ``reserve_all``
applies a whole cart all-or-nothing: lines are reserved in product-id order
(so two multi-line orders always lock rows in the same order) and, on the
first failure, every line already reserved in the same call is restored
before the error propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Sequence

import structlog
from django.db import transaction

from modules.products.exceptions import (
    InsufficientStock,
    InvalidStockQuantity,
    ProductNotFound,
)

if TYPE_CHECKING:
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    """One product/quantity pair to reserve or restore."""

    product_id: Any
    quantity: int


class InventoryLedger:
    """Atomic reserve/restore operations over ``Product.quantity``."""

    def __init__(self, product_repository: IProductRepository) -> None:
        self._repo = product_repository

    # ------------------------------------------------------------------
    # Single-line operations
    # ------------------------------------------------------------------

    def reserve(self, product_id: Any, quantity: int) -> None:
        """Take *quantity* units out of stock.

        Raises:
            InvalidStockQuantity: quantity is not positive.
            ProductNotFound: product does not exist.
            InsufficientStock: fewer than *quantity* units are available.
        """
        _check_quantity(quantity)
        if self._repo.decrement_if_available(product_id, quantity):
            logger.info(
                "inventory.stock_reserved",
                product_id=str(product_id),
                quantity=quantity,
            )
            return

        available = self._repo.get_quantity(product_id)
        if available is None:
            raise ProductNotFound(product_id)
        logger.warning(
            "inventory.insufficient_stock",
            product_id=str(product_id),
            requested=quantity,
            available=available,
        )
        raise InsufficientStock(product_id, available=available, requested=quantity)

    def restore(self, product_id: Any, quantity: int) -> None:
        """Put *quantity* units back into stock.

        Raises:
            InvalidStockQuantity: quantity is not positive.
            ProductNotFound: product does not exist.
        """
        _check_quantity(quantity)
        if not self._repo.increment(product_id, quantity):
            raise ProductNotFound(product_id)
        logger.info(
            "inventory.stock_restored",
            product_id=str(product_id),
            quantity=quantity,
        )

    # ------------------------------------------------------------------
    # Cart operations
    # ------------------------------------------------------------------

    @transaction.atomic
    def reserve_all(self, lines: Sequence[StockLine]) -> List[StockLine]:
        """Reserve every line or none of them.

        Returns the reserved lines (in reservation order) so the caller can
        hand them back to ``restore_all`` if a later step fails.

        Raises:
            ProductNotFound / InsufficientStock: with ``index`` set to the
                position of the failing line in *lines*.
        """
        ordered = sorted(enumerate(lines), key=lambda pair: str(pair[1].product_id))
        reserved: List[StockLine] = []

        for index, line in ordered:
            try:
                self.reserve(line.product_id, line.quantity)
            except (ProductNotFound, InsufficientStock) as exc:
                exc.index = index
                logger.warning(
                    "inventory.reservation_failed",
                    failed_index=index,
                    product_id=str(line.product_id),
                    rolled_back=len(reserved),
                )
                self.restore_all(reserved)
                raise
            reserved.append(line)

        return reserved

    def restore_all(self, lines: Sequence[StockLine]) -> None:
        """Compensate a previous ``reserve_all`` (most recent line first)."""
        for line in reversed(lines):
            self.restore(line.product_id, line.quantity)
        if lines:
            logger.info("inventory.reservation_rolled_back", line_count=len(lines))


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidStockQuantity(f"Quantity must be a positive integer, got {quantity!r}.")
