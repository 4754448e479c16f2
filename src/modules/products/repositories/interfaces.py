"""Product repository interface.

Extends ``IRepository[Product]`` with the stock primitives the inventory
ledger is built on.  Both stock mutations must be single atomic statements
against the backing store, never as a read followed by a write.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_many(self, ids: Iterable[Any]) -> Dict[str, Product]:
        """Return the existing products among *ids*, keyed by ``str(id)``."""

    @abstractmethod
    def list_available(self) -> List[Product]:
        """Products that currently have stock, by category then name."""

    @abstractmethod
    def decrement_if_available(self, id: Any, quantity: int) -> bool:
        """Atomically subtract *quantity* only if at least that much is in stock.

        Returns ``True`` when exactly one row was updated.
        """

    @abstractmethod
    def increment(self, id: Any, quantity: int) -> bool:
        """Atomically add *quantity*; ``False`` if the product does not exist."""

    @abstractmethod
    def get_quantity(self, id: Any) -> Optional[int]:
        """Current stock level, or ``None`` if the product does not exist."""
