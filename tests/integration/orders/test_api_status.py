"""Integration tests for ``PATCH /orders/{id}/status/``.

Covers:
- Staff walks an order through its lifecycle; history grows by one
  record per change.
- After commit, exactly one notification email per change; delivery
  attaches the invoice.
- Notification failures never undo a committed status change.
- Same-status requests edit shipping metadata without history or email.
- Rejections: invalid edge, unknown status, shipping without tracking,
  non-staff caller, unknown order.
"""

from __future__ import annotations

from unittest.mock import patch
from uuid import uuid4

import pytest
from django.core import mail

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderStatusHistory

pytestmark = pytest.mark.integration


def _url(order):
    return f"/api/v1/orders/{order.id}/status/"


@pytest.fixture()
def order(make_order):
    return make_order()


@pytest.fixture()
def shipped_order(order, order_service, staff_user):
    order_service.transition(order.id, OrderStatus.APPROVED, staff_user)
    return order_service.transition(
        order.id, OrderStatus.SHIPPED, staff_user, tracking_number="TRK-1"
    )


class TestStatusTransitions:
    def test_approve_records_history(self, staff_client, staff_user, order):
        response = staff_client.patch(
            _url(order), {"status": "Approved", "notes": "Stock checked"}, format="json"
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == OrderStatus.APPROVED
        assert data["updated_by_id"] == staff_user.pk
        latest = data["status_history"][-1]
        assert latest["previous_status"] == OrderStatus.PENDING
        assert latest["status"] == OrderStatus.APPROVED
        assert latest["notes"] == "Stock checked"
        assert latest["actor_id"] == staff_user.pk

    def test_ship_with_tracking_and_eta(self, staff_client, order, order_service, staff_user):
        order_service.transition(order.id, OrderStatus.APPROVED, staff_user)

        response = staff_client.patch(
            _url(order),
            {
                "status": "Shipped",
                "trackingNumber": "  TRK-9  ",
                "estimatedDelivery": "2030-01-15",
            },
            format="json",
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tracking_number"] == "TRK-9"
        assert data["estimated_delivery"] == "2030-01-15"

    def test_each_change_sends_one_email_after_commit(
        self, staff_client, order, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            response = staff_client.patch(_url(order), {"status": "Approved"}, format="json")

        assert response.status_code == 200
        assert len(callbacks) == 1
        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.subject == f"Order Status Update: {order.order_number}"
        assert message.to == ["carol@example.com"]
        assert message.attachments == []

    def test_delivery_attaches_invoice(
        self, staff_client, shipped_order, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = staff_client.patch(
                _url(shipped_order), {"status": "Delivered"}, format="json"
            )

        assert response.status_code == 200
        assert len(mail.outbox) == 1
        assert len(mail.outbox[0].attachments) == 1
        filename = mail.outbox[0].attachments[0][0]
        assert filename == f"Invoice-{shipped_order.order_number}.html"

    def test_notification_failure_keeps_status(
        self, staff_client, shipped_order, django_capture_on_commit_callbacks
    ):
        with patch(
            "modules.notifications.notifier.EmailNotifier.notify",
            side_effect=ConnectionError("smtp down"),
        ):
            with django_capture_on_commit_callbacks(execute=True):
                response = staff_client.patch(
                    _url(shipped_order), {"status": "Delivered"}, format="json"
                )

        assert response.status_code == 200
        assert Order.objects.get(id=shipped_order.id).status == OrderStatus.DELIVERED
        assert mail.outbox == []

    def test_invoice_failure_still_notifies(
        self, staff_client, shipped_order, django_capture_on_commit_callbacks
    ):
        with patch(
            "modules.notifications.invoices.HtmlInvoiceRenderer.render_invoice",
            side_effect=RuntimeError("template broken"),
        ):
            with django_capture_on_commit_callbacks(execute=True):
                staff_client.patch(_url(shipped_order), {"status": "Delivered"}, format="json")

        assert len(mail.outbox) == 1
        assert mail.outbox[0].attachments == []


class TestMetadataEdit:
    def test_same_status_updates_tracking_only(
        self, staff_client, shipped_order, django_capture_on_commit_callbacks
    ):
        history_before = OrderStatusHistory.objects.filter(order_id=shipped_order.id).count()

        with django_capture_on_commit_callbacks(execute=True):
            response = staff_client.patch(
                _url(shipped_order),
                {"status": "Shipped", "trackingNumber": "TRK-2", "notes": "Carrier changed"},
                format="json",
            )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == OrderStatus.SHIPPED
        assert data["tracking_number"] == "TRK-2"
        assert "Carrier changed" in data["notes"]
        assert OrderStatusHistory.objects.filter(order_id=shipped_order.id).count() == history_before
        assert mail.outbox == []


class TestStatusRejections:
    def test_invalid_edge(self, staff_client, order):
        response = staff_client.patch(_url(order), {"status": "Delivered"}, format="json")

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "invalid_transition"
        assert Order.objects.get(id=order.id).status == OrderStatus.PENDING

    def test_terminal_order_cannot_move(self, staff_client, order, order_service, staff_user):
        order_service.transition(order.id, OrderStatus.CANCELLED, staff_user)

        response = staff_client.patch(_url(order), {"status": "Approved"}, format="json")

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "invalid_transition"

    def test_unknown_status(self, staff_client, order):
        response = staff_client.patch(_url(order), {"status": "Lost"}, format="json")

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "invalid_status"

    def test_shipping_requires_tracking_number(self, staff_client, order, order_service, staff_user):
        order_service.transition(order.id, OrderStatus.APPROVED, staff_user)

        response = staff_client.patch(
            _url(order), {"status": "Shipped", "trackingNumber": "   "}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "missing_tracking_number"
        assert Order.objects.get(id=order.id).status == OrderStatus.APPROVED

    def test_customer_cannot_change_status(self, customer_client, order):
        response = customer_client.patch(_url(order), {"status": "Approved"}, format="json")

        assert response.status_code == 403
        assert response.json()["type"] == "authorization_error"

    def test_unknown_order(self, staff_client):
        response = staff_client.patch(
            f"/api/v1/orders/{uuid4()}/status/", {"status": "Approved"}, format="json"
        )

        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "order_not_found"
