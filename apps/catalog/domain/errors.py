from __future__ import annotations


class CatalogDomainError(ValueError):
    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class ProductValidationError(CatalogDomainError):
    pass


class ProductNotFoundError(CatalogDomainError):
    pass


class ProductOwnershipError(CatalogDomainError):
    pass


class InsufficientStockError(CatalogDomainError):
    def __init__(self, message: str, *, product_id: int | None = None):
        super().__init__(message, field="quantity")
        self.product_id = product_id
