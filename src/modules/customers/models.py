"""Customer identity record.

An order is owned by a ``Customer``.  Customers ordering for themselves are
linked to their login account (``user``); customers provisioned by staff from
contact details have no account until one is linked later.

Rules implemented here:
- Email is unique and stored lower-cased (case-insensitive matching).
- The customer record is the live profile; orders keep their own snapshot
  of name/email/phone/address, so editing a customer never rewrites history.
"""

from __future__ import annotations

import structlog
from django.conf import settings
from django.db import models

from modules.core.models import BaseModel

logger = structlog.get_logger(__name__)


class Customer(BaseModel):
    """Customer aggregate root."""

    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.TextField(blank=True, default="")
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer_profile",
    )

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["-created_at"], name="customers_created_idx"),
        ]

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "customer_created",
                customer_id=str(self.id),
                linked_user=self.user_id is not None,
            )

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"
