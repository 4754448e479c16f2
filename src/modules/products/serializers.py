"""Product DRF serializers.

Products are read-only from the order core's point of view: the only
product resource it exposes is the catalogue of items that can currently
be ordered.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product


class AvailableProductSerializer(serializers.ModelSerializer):
    """Read serializer for products offered on the order form."""

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "category",
            "description",
            "price",
            "quantity",
        ]
        read_only_fields = fields
