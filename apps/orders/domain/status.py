from __future__ import annotations

from enum import IntEnum, StrEnum


class OrderStatus(IntEnum):
    """Fulfilment stage. Only CANCELLED may be reached from any stage."""

    PLACED = 0
    SHIPPED = 1
    OUT_FOR_DELIVERY = 2
    DELIVERED = 3
    CANCELLED = 4

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class PaymentStatus(StrEnum):
    PENDING = "pending"
    INITIATED = "initiated"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(StrEnum):
    COD = "COD"
    MPESA = "M-Pesa"
