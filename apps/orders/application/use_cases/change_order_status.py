from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.notifications.application.use_cases.notify_order_event import NotifyOrderEventUseCase
from apps.notifications.domain.types import OrderEvent
from apps.orders.domain.policies import parse_order_status
from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order
from apps.orders.services.order_query_service import OrderQueryService
from apps.orders.services.order_stock_service import OrderStockService

logger = logging.getLogger("soko.orders")


@dataclass(frozen=True)
class ChangeOrderStatusCommand:
    actor: object
    order_id: int
    status: object


class ChangeOrderStatusUseCase:
    """Sets any known fulfilment stage. Sellers must own a line of the order.

    Cancelling before shipment returns the stock; reopening a restocked order
    reserves it again (409 when the shelf can no longer cover it).
    """

    @staticmethod
    @transaction.atomic
    def execute(cmd: ChangeOrderStatusCommand) -> Order:
        new_status = parse_order_status(cmd.status)
        order = OrderQueryService.get_for_seller(user=cmd.actor, order_id=cmd.order_id, for_update=True)

        previous = order.status
        if new_status == OrderStatus.CANCELLED:
            OrderStockService.release(order, previous_status=previous)
        elif previous == OrderStatus.CANCELLED:
            OrderStockService.reclaim(order)
        order.status = new_status
        order.save(update_fields=["status", "stock_held"])

        logger.info("order %s status %s -> %s by %s", order.id, previous, int(new_status), cmd.actor.id)
        if previous != new_status:
            event = OrderEvent.CANCELLED if new_status == OrderStatus.CANCELLED else OrderEvent.STATUS_CHANGED
            NotifyOrderEventUseCase.on_commit(order.id, event)
        return order
