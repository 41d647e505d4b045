from __future__ import annotations

from collections import OrderedDict
from typing import Iterable

from django.db.models import F

from ..domain.errors import InsufficientStockError, ProductNotFoundError, ProductValidationError
from ..models import Product


class InventoryService:
    """Stock reservation for order placement and restock for cancellation.

    Both methods are expected to run inside the caller's ``transaction.atomic``
    block so that the order row and the stock movement commit together.
    """

    @staticmethod
    def reserve(lines: Iterable[tuple[int, int]]) -> dict[int, Product]:
        wanted: "OrderedDict[int, int]" = OrderedDict()
        for product_id, quantity in lines:
            if quantity is None or int(quantity) < 1:
                raise ProductValidationError("Quantity must be at least 1.", field="quantity")
            wanted[int(product_id)] = wanted.get(int(product_id), 0) + int(quantity)
        if not wanted:
            raise ProductValidationError("At least one product is required.", field="items")

        products = {
            p.id: p for p in Product.objects.select_for_update().filter(id__in=list(wanted.keys()))
        }
        for product_id, quantity in wanted.items():
            product = products.get(product_id)
            if product is None or not product.is_active:
                raise ProductNotFoundError(f"Product {product_id} is not available.", field="items")
            if product.quantity < quantity:
                raise InsufficientStockError(
                    f"Only {product.quantity} left in stock for '{product.name}'.",
                    product_id=product_id,
                )

        for product_id, quantity in wanted.items():
            Product.objects.filter(id=product_id).update(quantity=F("quantity") - quantity)
        return products

    @staticmethod
    def restock(lines: Iterable[tuple[int, int]]) -> int:
        """Return reserved quantities; lines whose product no longer exists are skipped."""
        restored = 0
        for product_id, quantity in lines:
            if not product_id or not quantity:
                continue
            restored += Product.objects.filter(id=product_id).update(quantity=F("quantity") + int(quantity))
        return restored
