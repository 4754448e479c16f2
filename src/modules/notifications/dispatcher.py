"""Post-commit side effects of order status changes.

``SideEffectDispatcher.dispatch`` sends the customer one status email per
change and, on delivery, attaches the rendered invoice.  It runs after the
status change has committed; collaborator failures are logged, never raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional

import structlog
from django.conf import settings
from django.template.loader import render_to_string
from django.utils.module_loading import import_string

from modules.core.exceptions import DependencyError
from modules.notifications.notifier import Attachment
from modules.orders.constants import OrderStatus

if TYPE_CHECKING:
    from modules.notifications.invoices import InvoiceRenderer
    from modules.notifications.notifier import Notifier
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)

DEFAULT_NOTIFIER_CLASS = "modules.notifications.notifier.EmailNotifier"
DEFAULT_INVOICE_RENDERER_CLASS = "modules.notifications.invoices.HtmlInvoiceRenderer"

STATUS_COLORS = {
    OrderStatus.PENDING: "#f59e0b",
    OrderStatus.APPROVED: "#3b82f6",
    OrderStatus.SHIPPED: "#8b5cf6",
    OrderStatus.DELIVERED: "#10b981",
    OrderStatus.CANCELLED: "#ef4444",
}


class SideEffectDispatcher:
    """Notify the customer about a committed status change."""

    template_name = "notifications/order_status.html"

    def __init__(self, notifier: Notifier, invoice_renderer: InvoiceRenderer) -> None:
        self._notifier = notifier
        self._renderer = invoice_renderer

    @classmethod
    def from_settings(cls) -> SideEffectDispatcher:
        notifier_class = import_string(
            getattr(settings, "ORDERS_NOTIFIER_CLASS", DEFAULT_NOTIFIER_CLASS)
        )
        renderer_class = import_string(
            getattr(settings, "ORDERS_INVOICE_RENDERER_CLASS", DEFAULT_INVOICE_RENDERER_CLASS)
        )
        return cls(notifier=notifier_class(), invoice_renderer=renderer_class())

    def dispatch(
        self,
        order: Order,
        previous_status: str,
        new_status: str,
        attach_invoice: bool = False,
    ) -> bool:
        """Send the status notification; return ``True`` if it went out."""
        log = logger.bind(
            order_id=str(order.id),
            previous_status=previous_status,
            new_status=new_status,
        )

        email = order.customer_email or getattr(order.customer, "email", "")
        if not email:
            log.warning("order.notification_skipped", reason="no_customer_email")
            return False

        attachments: List[Attachment] = []
        if attach_invoice:
            invoice = self._render_invoice(order)
            if invoice is not None:
                attachments.append(invoice)

        subject = f"Order Status Update: {order.order_number}"
        body = self.render_body(order, previous_status, new_status)

        try:
            self._notifier.notify(email, subject, body, attachments)
        except Exception as exc:
            error = DependencyError(f"Notifier failed: {exc}")
            log.error(
                "order.notification_failed",
                error_type=error.error_type,
                error=error.message,
                exc_info=True,
            )
            return False

        log.info("order.notification_sent", invoice_attached=bool(attachments))
        return True

    def render_body(self, order: Order, previous_status: str, new_status: str) -> str:
        context = {
            "order": order,
            "items": list(order.items.all()),
            "previous_status": previous_status,
            "new_status": new_status,
            "status_color": STATUS_COLORS.get(new_status, "#6b7280"),
            "cancellation_reason": _cancellation_reason(order)
            if new_status == OrderStatus.CANCELLED
            else "",
        }
        return render_to_string(self.template_name, context)

    def _render_invoice(self, order: Order) -> Optional[Attachment]:
        try:
            content = self._renderer.render_invoice(order)
        except Exception as exc:
            error = DependencyError(f"Invoice rendering failed: {exc}")
            logger.error(
                "order.invoice_failed",
                order_id=str(order.id),
                error_type=error.error_type,
                error=error.message,
                exc_info=True,
            )
            return None
        extension = getattr(self._renderer, "filename_extension", "pdf")
        return Attachment(
            filename=f"Invoice-{order.order_number}.{extension}",
            content=content,
            mimetype=getattr(self._renderer, "mimetype", "application/pdf"),
        )


def _cancellation_reason(order: Any) -> str:
    entries = [
        entry
        for entry in order.status_history.all()
        if entry.status == OrderStatus.CANCELLED
    ]
    return entries[-1].notes if entries else ""
