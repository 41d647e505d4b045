from __future__ import annotations

from rest_framework import serializers

from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order


class PlaceOrderSerializer(serializers.Serializer):
    address = serializers.CharField(max_length=2000)
    phone_number = serializers.CharField(max_length=32)
    payment_method = serializers.CharField(max_length=20, required=False, allow_blank=True)


class DirectOrderItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)


class DirectOrderSerializer(PlaceOrderSerializer):
    items = DirectOrderItemSerializer(many=True, allow_empty=False)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.IntegerField()


class PaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.CharField(max_length=20)


class BestSellersQuerySerializer(serializers.Serializer):
    month = serializers.IntegerField(required=False, allow_null=True, default=None)
    year = serializers.IntegerField(required=False, min_value=1970, allow_null=True, default=None)
    category = serializers.CharField(required=False, allow_blank=True, default="")


class OrderSerializer(serializers.ModelSerializer):
    cancelled = serializers.BooleanField(read_only=True)
    status_label = serializers.SerializerMethodField()
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "user_id",
            "products",
            "total_price",
            "address",
            "phone_number",
            "ordered_at",
            "status",
            "status_label",
            "cancelled",
            "payment_method",
            "payment_status",
            "payment_details",
        ]

    def get_status_label(self, obj) -> str:
        return OrderStatus(obj.status).label
