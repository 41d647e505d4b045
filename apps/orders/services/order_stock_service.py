from __future__ import annotations

import logging

from apps.catalog.domain.errors import CatalogDomainError
from apps.catalog.services.inventory_service import InventoryService
from apps.orders.domain.errors import OrderConflictError
from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order

logger = logging.getLogger("soko.orders")


class OrderStockService:
    """Moves an order's line quantities between the order and the shelf.

    ``Order.stock_held`` records whether the quantities reserved at placement
    are still out of stock on the order's behalf. Callers hold the order row
    lock and save ``stock_held`` together with the new status.
    """

    @staticmethod
    def release(order: Order, *, previous_status: int) -> bool:
        # Shipped goods have left the shelf for good.
        if not order.stock_held or previous_status >= OrderStatus.SHIPPED:
            return False
        InventoryService.restock(order.line_quantities())
        order.stock_held = False
        logger.info("order %s stock returned to inventory", order.id)
        return True

    @staticmethod
    def reclaim(order: Order) -> bool:
        """Reserve the lines again for a restocked order that is being reopened."""
        if order.stock_held:
            return False
        try:
            InventoryService.reserve(order.line_quantities())
        except CatalogDomainError as exc:
            raise OrderConflictError(f"Cannot reopen order: {exc}", field="status") from exc
        order.stock_held = True
        logger.info("order %s stock reserved again on reopen", order.id)
        return True
