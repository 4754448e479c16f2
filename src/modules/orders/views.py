"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Views never catch domain exceptions: ``api_exception_handler`` renders
them.  Successful single-resource responses are wrapped as ``{"data": ...}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.core.permissions import IsStaffActor
from modules.customers.dtos import CustomerInfoDTO, CustomerSpecDTO
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.customers.services import CustomerService
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CreateOrderSerializer,
    OrderListSerializer,
    OrderPaymentUpdateSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
)
from modules.orders.services import OrderService
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.serializers import AvailableProductSerializer

IDEMPOTENCY_HEADER = "Idempotency-Key"


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_name", "customer_email"]
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._product_repo = ProductDjangoRepository()
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            customer_service=CustomerService(CustomerDjangoRepository()),
            product_repository=self._product_repo,
        )

    def get_serializer_class(self):
        if self.action == "create":
            return CreateOrderSerializer
        if self.action == "list":
            return OrderListSerializer
        if self.action == "update_status":
            return OrderStatusUpdateSerializer
        if self.action == "update_payment":
            return OrderPaymentUpdateSerializer
        if self.action == "available_products":
            return AvailableProductSerializer
        return OrderSerializer

    def get_throttles(self) -> list[BaseThrottle]:
        """Pick the throttling scope for the current action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return self._service.list_orders(actor=self.request.user)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data

        idempotency_key = request.headers.get(IDEMPOTENCY_HEADER) or None
        existing = self._service.find_by_idempotency_key(idempotency_key)
        if existing is not None:
            existing = self._service.get_order(str(existing.id), request.user)
            return Response({"data": OrderSerializer(existing).data})

        dto = CreateOrderDTO(
            items=[
                CreateOrderItemDTO(
                    product_id=item["product_id"],
                    quantity=item["quantity"],
                )
                for item in data["products"]
            ],
            customer=_customer_spec(data),
            total_amount=data.get("total_amount"),
            payment_method=data["payment_method"],
            notes=data.get("notes", ""),
            idempotency_key=idempotency_key,
        )
        order = self._service.create_order(dto, request.user)
        return Response(
            {"data": OrderSerializer(order).data},
            status=status.HTTP_201_CREATED,
        )

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Staff see every order; customers only their own.  Filtering
        (status, customer, date range, total range) is handled by
        ``OrderFilter``, ordering by ``OrderingFilter``.  Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: Optional[str] = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(str(pk), request.user)
        return Response({"data": OrderSerializer(order).data})

    @action(detail=False, methods=["get"], url_path="available-products")
    def available_products(self, request: Request) -> Response:
        """GET /api/v1/orders/available-products/

        Products with stock left, ordered by category then name.
        """
        products = self._product_repo.list_available()
        return Response({"data": AvailableProductSerializer(products, many=True).data})

    # ------------------------------------------------------------------
    # Status / Payment (staff only)
    # ------------------------------------------------------------------

    @action(
        detail=True,
        methods=["patch"],
        url_path="status",
        permission_classes=[IsAuthenticated, IsStaffActor],
    )
    def update_status(self, request: Request, pk: Optional[str] = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/"""
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = self._service.transition(
            order_id=pk,
            target_status=data["status"],
            actor=request.user,
            notes=data.get("notes", ""),
            tracking_number=data.get("tracking_number"),
            estimated_delivery=data.get("estimated_delivery"),
        )
        return Response({"data": OrderSerializer(order).data})

    @action(
        detail=True,
        methods=["patch"],
        url_path="payment",
        permission_classes=[IsAuthenticated, IsStaffActor],
    )
    def update_payment(self, request: Request, pk: Optional[str] = None) -> Response:
        """PATCH /api/v1/orders/{pk}/payment/"""
        serializer = OrderPaymentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = self._service.update_payment(
            order_id=pk,
            payment_status=data["payment_status"],
            payment_method=data["payment_method"],
            actor=request.user,
            notes=data.get("notes", ""),
        )
        return Response({"data": OrderSerializer(order).data})


def _customer_spec(data: Dict[str, Any]) -> Optional[CustomerSpecDTO]:
    """Translate the request's customer fields into a customer spec."""
    if data.get("customer"):
        return CustomerSpecDTO.by_id(data["customer"])
    info = data.get("customer_info")
    if info:
        return CustomerSpecDTO.by_info(
            CustomerInfoDTO(
                name=info.get("name") or None,
                email=info.get("email") or None,
                phone=info.get("phone", ""),
                address=info.get("address", ""),
            )
        )
    return None
