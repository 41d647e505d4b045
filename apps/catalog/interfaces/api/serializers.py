from __future__ import annotations

from rest_framework import serializers

from apps.catalog.models import Product


class ProductSerializer(serializers.ModelSerializer):
    seller_id = serializers.IntegerField(read_only=True)
    final_price = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "seller_id",
            "name",
            "description",
            "category",
            "price",
            "final_price",
            "discount_percentage",
            "discount_starts_at",
            "discount_ends_at",
            "quantity",
            "is_active",
            "created_at",
            "updated_at",
        ]

    def get_final_price(self, obj) -> str:
        return str(obj.final_price())


class ProductWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    category = serializers.CharField(max_length=100)
    price = serializers.DecimalField(max_digits=12, decimal_places=2)
    quantity = serializers.IntegerField(min_value=0)


class DiscountSerializer(serializers.Serializer):
    percentage = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0)
    starts_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    ends_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
