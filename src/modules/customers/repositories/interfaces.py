"""Customer repository interface.

Extends ``IRepository[Customer]`` with the look-ups order intake needs to
resolve a customer spec: by login account and by (case-insensitive) email.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.models import Customer


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for the Customer aggregate."""

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Customer]:
        """Retrieve a customer by email address (case-insensitive)."""

    @abstractmethod
    def get_by_user(self, user_id: Any) -> Optional[Customer]:
        """Retrieve the customer linked to a login account."""

    @abstractmethod
    def get_or_create_by_email(
        self, email: str, defaults: Dict[str, Any]
    ) -> Tuple[Customer, bool]:
        """Match a customer by email or provision one from ``defaults``."""
