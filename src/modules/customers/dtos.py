"""Customer DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
DTOs are immutable (``frozen=True``).

- ``CustomerInfoDTO``: contact details supplied by staff.
- ``CustomerSpecDTO``: who an order is for (``self`` / ``by_id`` / ``by_info``).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator, model_validator


class CustomerSpecKind(StrEnum):
    SELF = "self"
    BY_ID = "by_id"
    BY_INFO = "by_info"


class CustomerInfoDTO(BaseModel):
    """Contact details for a customer that staff is ordering for.

    Name and email are optional at this layer so that their absence is
    reported as ``InvalidCustomerInfo`` by the resolver rather than as a
    generic parsing failure.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: str = ""
    address: str = ""

    @field_validator("name", "phone", "address", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class CustomerSpecDTO(BaseModel):
    """Immutable description of the customer an order is placed for."""

    model_config = ConfigDict(frozen=True)

    kind: CustomerSpecKind = CustomerSpecKind.SELF
    customer_id: Optional[UUID] = None
    info: Optional[CustomerInfoDTO] = None

    @model_validator(mode="after")
    def payload_matches_kind(self) -> Self:
        if self.kind == CustomerSpecKind.BY_ID and self.customer_id is None:
            raise ValueError("customer_id is required for a by_id customer spec.")
        if self.kind == CustomerSpecKind.BY_INFO and self.info is None:
            raise ValueError("info is required for a by_info customer spec.")
        return self

    @classmethod
    def for_self(cls) -> CustomerSpecDTO:
        return cls(kind=CustomerSpecKind.SELF)

    @classmethod
    def by_id(cls, customer_id: UUID) -> CustomerSpecDTO:
        return cls(kind=CustomerSpecKind.BY_ID, customer_id=customer_id)

    @classmethod
    def by_info(cls, info: CustomerInfoDTO) -> CustomerSpecDTO:
        return cls(kind=CustomerSpecKind.BY_INFO, info=info)
