from __future__ import annotations

from decimal import Decimal

from django.db import transaction

from apps.accounts.application.services.identity_service import AccountIdentityService

from ..domain.errors import ProductNotFoundError, ProductOwnershipError, ProductValidationError
from ..models import Product


class ProductService:
    @staticmethod
    def _validate_price(price) -> Decimal:
        if price is None or Decimal(price) <= 0:
            raise ProductValidationError("Price must be positive", field="price")
        return Decimal(price)

    @staticmethod
    def _validate_quantity(quantity) -> int:
        if quantity is None or int(quantity) < 0:
            raise ProductValidationError("Quantity cannot be negative", field="quantity")
        return int(quantity)

    @staticmethod
    def _validate_name(name: str) -> str:
        value = (name or "").strip()
        if not value:
            raise ProductValidationError("Name is required", field="name")
        return value

    @staticmethod
    def get_owned(*, actor, product_id: int) -> Product:
        product = Product.objects.filter(id=product_id).first()
        if product is None:
            raise ProductNotFoundError("Product not found.")
        if product.seller_id != actor.id and not AccountIdentityService.is_admin(actor):
            raise ProductOwnershipError("Product does not belong to this seller.")
        return product

    @staticmethod
    @transaction.atomic
    def create_product(
        *,
        seller,
        name: str,
        category: str,
        price,
        quantity: int = 0,
        description: str = "",
    ) -> Product:
        return Product.objects.create(
            seller=seller,
            name=ProductService._validate_name(name),
            description=(description or "").strip(),
            category=(category or "").strip() or "general",
            price=ProductService._validate_price(price),
            quantity=ProductService._validate_quantity(quantity),
            is_active=True,
        )

    @staticmethod
    @transaction.atomic
    def update_product(
        *,
        actor,
        product_id: int,
        name: str,
        category: str,
        price,
        quantity: int,
        description: str = "",
    ) -> Product:
        product = ProductService.get_owned(actor=actor, product_id=product_id)
        product.name = ProductService._validate_name(name)
        product.category = (category or "").strip() or product.category
        product.price = ProductService._validate_price(price)
        product.quantity = ProductService._validate_quantity(quantity)
        product.description = (description or "").strip()
        product.save(update_fields=["name", "category", "price", "quantity", "description", "updated_at"])
        return product

    @staticmethod
    @transaction.atomic
    def delete_product(*, actor, product_id: int) -> None:
        product = ProductService.get_owned(actor=actor, product_id=product_id)
        product.delete()

    @staticmethod
    @transaction.atomic
    def set_discount(*, actor, product_id: int, percentage, starts_at, ends_at) -> Product:
        """Percentage off the list price between ``starts_at`` and ``ends_at``; 0 clears it."""
        product = ProductService.get_owned(actor=actor, product_id=product_id)
        percentage = Decimal(percentage)
        if percentage < 0 or percentage >= 100:
            raise ProductValidationError("Discount must be between 0 and 100 percent", field="percentage")
        if percentage == 0:
            starts_at = ends_at = None
        elif starts_at is None or ends_at is None or ends_at <= starts_at:
            raise ProductValidationError("Discount must end after it starts", field="ends_at")

        product.discount_percentage = percentage
        product.discount_starts_at = starts_at
        product.discount_ends_at = ends_at
        product.save(
            update_fields=["discount_percentage", "discount_starts_at", "discount_ends_at", "updated_at"]
        )
        return product
