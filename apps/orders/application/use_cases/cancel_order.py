from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.notifications.application.use_cases.notify_order_event import NotifyOrderEventUseCase
from apps.notifications.domain.types import OrderEvent
from apps.orders.domain.policies import ensure_buyer_can_cancel, ensure_can_override_cancel
from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order
from apps.orders.services.order_query_service import OrderQueryService
from apps.orders.services.order_stock_service import OrderStockService

logger = logging.getLogger("soko.orders")


@dataclass(frozen=True)
class CancelOrderCommand:
    user: object
    order_id: int


class CancelOrderUseCase:
    """Buyer cancellation: only before shipment, and stock goes back on the shelf."""

    @staticmethod
    @transaction.atomic
    def execute(cmd: CancelOrderCommand) -> Order:
        order = OrderQueryService.get_owned(user=cmd.user, order_id=cmd.order_id, for_update=True)
        ensure_buyer_can_cancel(order.status)

        OrderStockService.release(order, previous_status=order.status)
        order.status = OrderStatus.CANCELLED
        order.save(update_fields=["status", "stock_held"])

        logger.info("order %s cancelled by buyer %s", order.id, cmd.user.id)
        NotifyOrderEventUseCase.on_commit(order.id, OrderEvent.CANCELLED)
        return order


@dataclass(frozen=True)
class OverrideCancelOrderCommand:
    actor: object
    order_id: int


class OverrideCancelOrderUseCase:
    """Administrative cancellation at any stage. Stock comes back only if nothing has shipped."""

    @staticmethod
    @transaction.atomic
    def execute(cmd: OverrideCancelOrderCommand) -> Order:
        order = OrderQueryService.get(cmd.order_id, for_update=True)
        ensure_can_override_cancel(order.status)

        OrderStockService.release(order, previous_status=order.status)
        order.status = OrderStatus.CANCELLED
        order.save(update_fields=["status", "stock_held"])

        logger.info("order %s cancelled by admin %s", order.id, cmd.actor.id)
        NotifyOrderEventUseCase.on_commit(order.id, OrderEvent.CANCELLED)
        return order
