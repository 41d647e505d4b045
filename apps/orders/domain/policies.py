from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .errors import OrderConflictError, OrderValidationError
from .status import OrderStatus, PaymentMethod, PaymentStatus


def validate_delivery(*, address: str, phone_number: str) -> tuple[str, str]:
    address = (address or "").strip()
    phone_number = (phone_number or "").strip()
    if not address:
        raise OrderValidationError("Address is required.", field="address")
    if not phone_number:
        raise OrderValidationError("Phone number is required.", field="phone_number")
    return address, phone_number


def validate_payment_method(raw: str | None) -> PaymentMethod:
    if not raw:
        return PaymentMethod.COD
    for method in PaymentMethod:
        if raw.strip().lower() == method.value.lower():
            return method
    raise OrderValidationError(f"Unsupported payment method: {raw}", field="payment_method")


def parse_order_status(raw) -> OrderStatus:
    try:
        return OrderStatus(int(raw))
    except (TypeError, ValueError):
        raise OrderValidationError(f"Unknown order status: {raw}", field="status") from None


def parse_payment_status(raw) -> PaymentStatus:
    try:
        return PaymentStatus(str(raw).strip().lower())
    except ValueError:
        raise OrderValidationError(f"Unknown payment status: {raw}", field="payment_status") from None


def line_unit_price(product: dict) -> Decimal:
    """Snapshot price a line was sold at; lines without a final price fall back to list price."""
    return Decimal(str(product.get("final_price") or product.get("price") or "0"))


def order_total(lines: Iterable[dict]) -> Decimal:
    total = Decimal("0")
    for line in lines:
        total += line_unit_price(line["product"]) * int(line["quantity"])
    return total


def line_seller_ids(lines: Iterable[dict]) -> set[int]:
    return {int(line["product"]["seller_id"]) for line in lines if line.get("product", {}).get("seller_id")}


def seller_owns_any_line(lines: Iterable[dict], seller_id: int) -> bool:
    return int(seller_id) in line_seller_ids(lines)


def ensure_buyer_can_cancel(status: int) -> None:
    if status == OrderStatus.CANCELLED:
        raise OrderConflictError("Order is already cancelled.")
    if status >= OrderStatus.SHIPPED:
        raise OrderConflictError("Cannot cancel order that has been shipped.")


def ensure_can_override_cancel(status: int) -> None:
    if status == OrderStatus.CANCELLED:
        raise OrderConflictError("Order is already cancelled.")


def ensure_deletable(status: int) -> None:
    if status != OrderStatus.CANCELLED:
        raise OrderConflictError("Can only delete cancelled orders.")


def ensure_payment_status_override(current: str, new: PaymentStatus) -> None:
    if current == PaymentStatus.PAID and new != PaymentStatus.PAID:
        raise OrderConflictError("Payment is already settled.")
