"""Invoice rendering.

``InvoiceRenderer`` turns an order into a document ready to attach to the
delivery notification.  The default renderer produces a standalone HTML
invoice from the ``notifications/invoice.html`` template.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone

if TYPE_CHECKING:
    from modules.orders.models import Order


class InvoiceRenderer(Protocol):
    filename_extension: str
    mimetype: str

    def render_invoice(self, order: Order) -> bytes: ...


class HtmlInvoiceRenderer:
    filename_extension = "html"
    mimetype = "text/html"

    template_name = "notifications/invoice.html"

    def render_invoice(self, order: Order) -> bytes:
        context = {
            "order": order,
            "items": list(order.items.all()),
            "issued_at": timezone.now(),
            "company_name": getattr(settings, "INVOICE_COMPANY_NAME", "Inventory Manager"),
        }
        return render_to_string(self.template_name, context).encode("utf-8")
