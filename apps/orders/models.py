from django.conf import settings
from django.db import models

from apps.orders.domain.status import OrderStatus, PaymentMethod, PaymentStatus


class Order(models.Model):
    STATUS_CHOICES = [(s.value, s.label) for s in OrderStatus]
    PAYMENT_STATUS_CHOICES = [(s.value, s.value.title()) for s in PaymentStatus]
    PAYMENT_METHOD_CHOICES = [(m.value, m.value) for m in PaymentMethod]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="orders")
    # [{"product": {id, name, category, price, seller_id}, "quantity": n}, ...]
    products = models.JSONField(default=list)
    sellers = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name="seller_orders", blank=True)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    address = models.TextField()
    phone_number = models.CharField(max_length=32)
    ordered_at = models.BigIntegerField(help_text="Epoch milliseconds.")
    status = models.PositiveSmallIntegerField(choices=STATUS_CHOICES, default=OrderStatus.PLACED.value)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default=PaymentMethod.COD.value)
    payment_status = models.CharField(
        max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PaymentStatus.PENDING.value
    )
    payment_details = models.JSONField(default=dict, blank=True)
    # False once the reserved quantities have been put back on the shelf.
    stock_held = models.BooleanField(default=True)

    class Meta:
        indexes = [
            models.Index(fields=["user", "ordered_at"], name="orders_orde_user_id_4b7e21_idx"),
            models.Index(fields=["status"], name="orders_orde_status_9c3d5a_idx"),
        ]

    def __str__(self) -> str:
        return f"Order #{self.pk}"

    @property
    def cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    def line_quantities(self) -> list[tuple[int, int]]:
        return [
            (int(line["product"]["id"]), int(line["quantity"]))
            for line in self.products or []
            if line.get("product", {}).get("id")
        ]
