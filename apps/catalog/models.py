from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

CENTS = Decimal("0.01")


class Product(models.Model):
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100, db_index=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    discount_starts_at = models.DateTimeField(null=True, blank=True)
    discount_ends_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["seller", "created_at"], name="catalog_pro_seller__6a1d2e_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} (qty={self.quantity})"

    def discount_active(self, at=None) -> bool:
        if not self.discount_percentage or self.discount_percentage <= 0:
            return False
        if self.discount_starts_at is None or self.discount_ends_at is None:
            return False
        at = at or timezone.now()
        return self.discount_starts_at <= at <= self.discount_ends_at

    def final_price(self, at=None) -> Decimal:
        """Price a buyer pays right now, after any running discount."""
        if not self.discount_active(at):
            return self.price
        factor = (Decimal("100") - self.discount_percentage) / Decimal("100")
        return (self.price * factor).quantize(CENTS, rounding=ROUND_HALF_UP)

    def snapshot(self) -> dict:
        """Denormalized copy embedded into orders at placement time."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": str(self.price),
            "final_price": str(self.final_price()),
            "seller_id": self.seller_id,
        }
