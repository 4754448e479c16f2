"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line item.
- ``CreateOrderDTO``: input for order creation (nested items + customer spec).

An empty ``items`` list is accepted here; the service reports it as
``EmptyCart`` alongside every other intake rule.  The same product may
appear on several lines; the service merges them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.customers.dtos import CustomerSpecDTO
from modules.orders.constants import PaymentMethod


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a creation request.

    The client sends ``product_id`` and ``quantity``.
    ``unit_price`` and ``product_name`` are resolved by the Service Layer
    from the product catalog.  A reference that is not a UUID is kept as
    text so the service reports it as an unknown product.
    """

    model_config = ConfigDict(frozen=True)

    product_id: Union[UUID, str]
    quantity: int

    @field_validator("product_id", mode="before")
    @classmethod
    def normalise_product_id(cls, v: Any) -> Union[UUID, str]:
        if isinstance(v, UUID):
            return v
        try:
            return UUID(str(v))
        except ValueError:
            return str(v)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    ``customer`` is ``None`` when the request names no customer: the
    service treats that as "the actor themselves" for customer accounts
    and rejects it for staff.  ``total_amount`` is the client's advisory
    total, compared against the computed one.
    """

    model_config = ConfigDict(frozen=True)

    items: List[CreateOrderItemDTO] = Field(default_factory=list)
    customer: Optional[CustomerSpecDTO] = None
    total_amount: Optional[Decimal] = None
    payment_method: PaymentMethod = PaymentMethod.OTHER
    notes: str = ""
    idempotency_key: Optional[str] = None
