"""Django ORM implementation of the Product repository.

Stock movements are expressed as single ``UPDATE`` statements with ``F()``
expressions.  The decrement carries its own guard in the ``WHERE`` clause
(``quantity >= n``), so two concurrent reservations against the same row are
serialised by the database and at most one of them can win the last units.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Returns ``None`` for non-existent or invalid IDs."""
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        queryset = Product.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id), sku=entity.sku)
        return entity

    def get_many(self, ids: Iterable[Any]) -> Dict[str, Product]:
        """Unparseable ids are skipped, so they read as missing products."""
        valid: List[UUID] = []
        for raw in ids:
            try:
                valid.append(raw if isinstance(raw, UUID) else UUID(str(raw)))
            except ValueError:
                continue
        products = Product.objects.filter(id__in=valid)
        return {str(product.id): product for product in products}

    def list_available(self) -> List[Product]:
        return list(Product.objects.filter(quantity__gt=0).order_by("category", "name"))

    def decrement_if_available(self, id: Any, quantity: int) -> bool:
        updated = Product.objects.filter(id=id, quantity__gte=quantity).update(
            quantity=F("quantity") - quantity, updated_at=timezone.now()
        )
        return updated == 1

    def increment(self, id: Any, quantity: int) -> bool:
        updated = Product.objects.filter(id=id).update(
            quantity=F("quantity") + quantity, updated_at=timezone.now()
        )
        return updated == 1

    def get_quantity(self, id: Any) -> Optional[int]:
        try:
            return Product.objects.filter(id=id).values_list("quantity", flat=True).first()
        except (ValueError, ValidationError):
            return None
