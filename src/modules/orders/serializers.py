"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.  Request bodies use camelCase keys;
``source=`` maps them onto the snake_case names the views hand to the
service.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import PaymentMethod
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single cart line (``{"product": <id>, "quantity": n}``).

    The product reference is taken as text; an id that matches no product
    is reported by the service as ``ProductNotFound``.
    """

    product = serializers.CharField(source="product_id", max_length=64)
    quantity = serializers.IntegerField(min_value=1)


class CustomerInfoSerializer(serializers.Serializer):
    """Contact details staff supply for a customer without a record id."""

    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    address = serializers.CharField(required=False, allow_blank=True)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload.

    An empty ``products`` list passes here and is rejected by the service
    as ``EmptyCart``.  Repeated products pass too and are merged there.
    """

    products = CreateOrderItemSerializer(many=True, allow_empty=True)
    customer = serializers.UUIDField(required=False, allow_null=True)
    customerInfo = CustomerInfoSerializer(required=False, source="customer_info")
    paymentMethod = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        required=False,
        default=PaymentMethod.OTHER,
        source="payment_method",
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)
    totalAmount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        allow_null=True,
        source="total_amount",
    )

    def validate(self, attrs):
        if attrs.get("customer") and attrs.get("customer_info"):
            raise serializers.ValidationError(
                "Provide either 'customer' or 'customerInfo', not both."
            )
        return attrs


class OrderStatusUpdateSerializer(serializers.Serializer):
    """Validates ``PATCH /orders/{id}/status/``.

    ``status`` is a plain string: unknown values are reported by the service
    as ``InvalidStatus``.
    """

    status = serializers.CharField()
    notes = serializers.CharField(required=False, default="", allow_blank=True)
    trackingNumber = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=100,
        source="tracking_number",
    )
    estimatedDelivery = serializers.DateField(
        required=False,
        allow_null=True,
        source="estimated_delivery",
    )


class OrderPaymentUpdateSerializer(serializers.Serializer):
    """Validates ``PATCH /orders/{id}/payment/``."""

    paymentStatus = serializers.CharField(source="payment_status")
    paymentMethod = serializers.CharField(source="payment_method")
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items (snapshotted name and price)."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "previous_status",
            "status",
            "actor_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_name",
            "customer_email",
            "customer_phone",
            "customer_address",
            "status",
            "payment_status",
            "payment_method",
            "total_amount",
            "notes",
            "tracking_number",
            "estimated_delivery",
            "created_by_id",
            "updated_by_id",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_name",
            "status",
            "payment_status",
            "total_amount",
            "created_at",
        ]
        read_only_fields = fields
