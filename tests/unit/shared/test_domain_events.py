"""Unit tests for domain event collection and the in-memory bus."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.events import OrderStatusChanged
from modules.orders.models import Order
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


def _event(**kwargs):
    return OrderStatusChanged(
        aggregate_id=kwargs.pop("aggregate_id", uuid4()),
        previous_status=OrderStatus.PENDING,
        new_status=OrderStatus.APPROVED,
        **kwargs,
    )


def test_order_registers_and_clears_domain_events():
    order = Order(
        order_number="ORD-TEST-000001",
        status=OrderStatus.PENDING,
        total_amount=Decimal("0.00"),
    )

    assert order.domain_events == []

    event = _event(aggregate_id=order.id)
    order.add_domain_event(event)

    assert order.domain_events == [event]
    assert event.event_name == "OrderStatusChanged"

    order.clear_domain_events()
    assert order.domain_events == []


class TestInMemoryEventBus:
    def test_publish_reaches_subscribed_handler(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        bus.subscribe(OrderStatusChanged, handler)
        event = _event()

        bus.publish(event)

        handler.handle.assert_called_once_with(event)

    def test_subscribe_is_idempotent(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        bus.subscribe(OrderStatusChanged, handler)
        bus.subscribe(OrderStatusChanged, handler)

        bus.publish(_event())

        assert handler.handle.call_count == 1

    def test_failing_handler_does_not_stop_others(self):
        bus = InMemoryEventBus()
        failing = MagicMock()
        failing.handle.side_effect = RuntimeError("boom")
        healthy = MagicMock()
        bus.subscribe(OrderStatusChanged, failing)
        bus.subscribe(OrderStatusChanged, healthy)

        bus.publish(_event())

        healthy.handle.assert_called_once()

    def test_unsubscribe_stops_delivery(self):
        bus = InMemoryEventBus()
        handler = MagicMock()
        bus.subscribe(OrderStatusChanged, handler)
        bus.unsubscribe(OrderStatusChanged, handler)

        bus.publish(_event())

        handler.handle.assert_not_called()


def test_pull_domain_events_drains_buffer():
    order = Order(status=OrderStatus.PENDING)
    first, second = _event(aggregate_id=order.id), _event(aggregate_id=order.id)
    order.add_domain_event(first)
    order.add_domain_event(second)

    assert order.pull_domain_events() == [first, second]
    assert order.pull_domain_events() == []
