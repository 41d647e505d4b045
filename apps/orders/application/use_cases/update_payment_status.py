from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.orders.domain.policies import ensure_payment_status_override, parse_payment_status
from apps.orders.models import Order
from apps.orders.services.order_query_service import OrderQueryService

logger = logging.getLogger("soko.orders")


@dataclass(frozen=True)
class UpdatePaymentStatusCommand:
    actor: object
    order_id: int
    payment_status: str


class UpdatePaymentStatusUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: UpdatePaymentStatusCommand) -> Order:
        new_status = parse_payment_status(cmd.payment_status)
        order = OrderQueryService.get_for_seller(user=cmd.actor, order_id=cmd.order_id, for_update=True)
        ensure_payment_status_override(order.payment_status, new_status)

        order.payment_status = new_status.value
        order.save(update_fields=["payment_status"])
        logger.info("order %s payment status set to %s by %s", order.id, new_status.value, cmd.actor.id)
        return order
