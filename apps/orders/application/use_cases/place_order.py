from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.cart.services.cart_service import CartService
from apps.catalog.services.inventory_service import InventoryService
from apps.notifications.application.use_cases.notify_order_event import NotifyOrderEventUseCase
from apps.notifications.domain.types import OrderEvent
from apps.orders.domain.errors import OrderValidationError
from apps.orders.domain.policies import line_seller_ids, order_total, validate_delivery, validate_payment_method
from apps.orders.domain.status import OrderStatus, PaymentStatus
from apps.orders.models import Order

logger = logging.getLogger("soko.orders")


@dataclass(frozen=True)
class PlaceOrderCommand:
    user: object
    address: str
    phone_number: str
    payment_method: str | None = None
    # (product_id, quantity) pairs; None places the caller's cart.
    items: tuple[tuple[int, int], ...] | None = None


def _epoch_millis() -> int:
    return int(timezone.now().timestamp() * 1000)


def _merge_lines(items) -> "OrderedDict[int, int]":
    merged: "OrderedDict[int, int]" = OrderedDict()
    for product_id, quantity in items:
        if int(quantity) < 1:
            raise OrderValidationError("Quantity must be at least 1.", field="items")
        merged[int(product_id)] = merged.get(int(product_id), 0) + int(quantity)
    return merged


class PlaceOrderUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: PlaceOrderCommand) -> Order:
        address, phone_number = validate_delivery(address=cmd.address, phone_number=cmd.phone_number)
        payment_method = validate_payment_method(cmd.payment_method)

        from_cart = cmd.items is None
        if from_cart:
            source = [(line.product_id, line.quantity) for line in CartService.lines(user=cmd.user)]
            if not source:
                raise OrderValidationError("Cart is empty.", field="cart")
        else:
            source = list(cmd.items)
            if not source:
                raise OrderValidationError("At least one item is required.", field="items")

        wanted = _merge_lines(source)
        products = InventoryService.reserve(wanted.items())

        lines = [
            {"product": products[product_id].snapshot(), "quantity": quantity}
            for product_id, quantity in wanted.items()
        ]
        order = Order.objects.create(
            user=cmd.user,
            products=lines,
            total_price=order_total(lines),
            address=address,
            phone_number=phone_number,
            ordered_at=_epoch_millis(),
            status=OrderStatus.PLACED,
            payment_method=payment_method.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_details={},
        )
        order.sellers.set(line_seller_ids(lines))

        if from_cart:
            CartService.clear(user=cmd.user)

        logger.info("order %s placed by user %s total=%s", order.id, cmd.user.id, order.total_price)
        NotifyOrderEventUseCase.on_commit(order.id, OrderEvent.PLACED)
        return order
