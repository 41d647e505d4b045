from __future__ import annotations

from rest_framework import serializers

from apps.orders.models import Order


class StkPushSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)
    phone_number = serializers.CharField(max_length=20)
    # Kept as a string; amount rules live in the domain policy.
    amount = serializers.CharField(max_length=20)


class OrderPaymentSerializer(serializers.ModelSerializer):
    cancelled = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "total_price",
            "status",
            "cancelled",
            "payment_method",
            "payment_status",
            "payment_details",
        ]
