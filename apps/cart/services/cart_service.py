from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import F

from apps.catalog.domain.errors import ProductNotFoundError
from apps.catalog.models import Product

from ..models import CartItem


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


class CartService:
    @staticmethod
    @transaction.atomic
    def add_product(*, user, product_id: int) -> CartItem:
        product = Product.objects.filter(id=product_id, is_active=True).first()
        if product is None:
            raise ProductNotFoundError("Product not found.")
        item, created = CartItem.objects.select_for_update().get_or_create(
            user=user, product=product, defaults={"quantity": 1}
        )
        if not created:
            CartItem.objects.filter(id=item.id).update(quantity=F("quantity") + 1)
            item.refresh_from_db(fields=["quantity"])
        return item

    @staticmethod
    @transaction.atomic
    def remove_product(*, user, product_id: int) -> None:
        """Decrement one unit; the line disappears when it reaches zero."""
        item = CartItem.objects.select_for_update().filter(user=user, product_id=product_id).first()
        if item is None:
            return
        if item.quantity <= 1:
            item.delete()
            return
        item.quantity -= 1
        item.save(update_fields=["quantity"])

    @staticmethod
    def lines(*, user) -> list[CartLine]:
        return [
            CartLine(product_id=item.product_id, quantity=item.quantity)
            for item in CartItem.objects.filter(user=user).order_by("added_at", "id")
        ]

    @staticmethod
    def clear(*, user) -> None:
        CartItem.objects.filter(user=user).delete()

    @staticmethod
    def summary(*, user) -> dict:
        items = CartItem.objects.filter(user=user).select_related("product").order_by("added_at", "id")
        total = Decimal("0")
        lines = []
        for item in items:
            unit_price = item.product.final_price()
            subtotal = unit_price * item.quantity
            total += subtotal
            lines.append(
                {
                    "product_id": item.product_id,
                    "name": item.product.name,
                    "price": str(item.product.price),
                    "final_price": str(unit_price),
                    "quantity": item.quantity,
                    "subtotal": str(subtotal),
                }
            )
        return {"items": lines, "total_price": str(total)}
