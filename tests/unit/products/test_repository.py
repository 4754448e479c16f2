"""Unit tests for ProductDjangoRepository stock primitives."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def repo():
    return ProductDjangoRepository()


class TestStockUpdates:
    def test_decrement_when_enough_stock(self, repo, make_product):
        product = make_product(quantity=3)

        assert repo.decrement_if_available(product.id, 3) is True
        assert Product.objects.get(id=product.id).quantity == 0

    def test_decrement_refused_when_short(self, repo, make_product):
        product = make_product(quantity=2)

        assert repo.decrement_if_available(product.id, 3) is False
        assert Product.objects.get(id=product.id).quantity == 2

    def test_decrement_unknown_product(self, repo):
        assert repo.decrement_if_available(uuid4(), 1) is False

    def test_increment(self, repo, make_product):
        product = make_product(quantity=2)

        assert repo.increment(product.id, 5) is True
        assert repo.get_quantity(product.id) == 7

    def test_increment_unknown_product(self, repo):
        assert repo.increment(uuid4(), 1) is False


class TestLookups:
    def test_get_many_keys_by_string_id(self, repo, make_product):
        first = make_product(name="First")
        second = make_product(name="Second")

        found = repo.get_many([first.id, second.id, uuid4()])

        assert set(found) == {str(first.id), str(second.id)}

    def test_get_many_skips_unparseable_ids(self, repo, make_product):
        product = make_product()

        found = repo.get_many(["not-a-uuid", str(product.id)])

        assert list(found) == [str(product.id)]

    def test_get_quantity_unknown(self, repo):
        assert repo.get_quantity(uuid4()) is None

    def test_get_by_id_invalid_uuid(self, repo):
        assert repo.get_by_id("not-a-uuid") is None

    def test_list_available_skips_sold_out(self, repo, make_product):
        make_product(name="In Stock", quantity=1)
        make_product(name="Sold Out", quantity=0)

        assert [p.name for p in repo.list_available()] == ["In Stock"]
