"""Customer resolution for order intake.

Turns a ``CustomerSpecDTO`` plus the acting user into the ``Customer`` that
owns a new order:

- ``self``: the actor is the customer.  The actor's customer record is
  created on first use (or an existing record with the same email is linked
  to the account).
- ``by_id``: staff only; the referenced customer must exist.
- ``by_info``: staff only; requires name and email, matches an existing
  customer by email or provisions a new one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from django.db import transaction

from modules.core.permissions import is_staff_actor
from modules.customers.dtos import CustomerSpecDTO, CustomerSpecKind
from modules.customers.exceptions import (
    CustomerNotFound,
    CustomerSpecNotAllowed,
    InvalidCustomerInfo,
)
from modules.customers.models import Customer

if TYPE_CHECKING:
    from modules.customers.dtos import CustomerInfoDTO
    from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class CustomerService:
    """Application service for Customer use-cases.

    Receives an ``ICustomerRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: ICustomerRepository) -> None:
        self._repo = repository

    @transaction.atomic
    def resolve(self, spec: CustomerSpecDTO, actor: Any) -> Customer:
        """Return the customer an order placed by *actor* belongs to.

        Raises:
            CustomerSpecNotAllowed: a non-staff actor asked for another customer.
            CustomerNotFound: ``by_id`` references an unknown customer.
            InvalidCustomerInfo: missing name/email (``by_info``) or an
                account without an email (``self``).
        """
        log = logger.bind(spec=spec.kind.value, actor_id=str(getattr(actor, "pk", "")))

        if spec.kind != CustomerSpecKind.SELF and not is_staff_actor(actor):
            log.warning("customer.spec_not_allowed")
            raise CustomerSpecNotAllowed(
                "Only staff may place orders for another customer."
            )

        if spec.kind == CustomerSpecKind.BY_ID:
            customer = self._repo.get_by_id(str(spec.customer_id))
            if not customer:
                raise CustomerNotFound(f"Customer {spec.customer_id} not found.")
            log.info("customer.resolved", customer_id=str(customer.id))
            return customer

        if spec.kind == CustomerSpecKind.BY_INFO:
            return self._resolve_by_info(spec.info)

        return self._resolve_self(actor)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _resolve_by_info(self, info: CustomerInfoDTO | None) -> Customer:
        if info is None or not info.name or not info.email:
            raise InvalidCustomerInfo("Customer name and email are required.")

        customer, created = self._repo.get_or_create_by_email(
            str(info.email),
            defaults={
                "name": info.name,
                "phone": info.phone,
                "address": info.address,
            },
        )
        logger.info(
            "customer.resolved",
            customer_id=str(customer.id),
            provisioned=created,
        )
        return customer

    def _resolve_self(self, actor: Any) -> Customer:
        customer = self._repo.get_by_user(actor.pk)
        if customer:
            return customer

        email = (getattr(actor, "email", "") or "").strip()
        if not email:
            raise InvalidCustomerInfo(
                "Your account has no email address; it cannot place orders."
            )

        customer = self._repo.get_by_email(email)
        if customer and customer.user_id is None:
            customer.user = actor
            customer = self._repo.save(customer)
            logger.info("customer.linked_to_account", customer_id=str(customer.id))
            return customer
        if customer:
            raise InvalidCustomerInfo(
                "Your email address belongs to another customer account."
            )

        name = actor.get_full_name() if hasattr(actor, "get_full_name") else ""
        customer = Customer(
            name=name or actor.get_username(),
            email=email,
            user=actor,
        )
        return self._repo.save(customer)
