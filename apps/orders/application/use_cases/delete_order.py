from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.orders.domain.policies import ensure_deletable
from apps.orders.services.order_query_service import OrderQueryService

logger = logging.getLogger("soko.orders")


@dataclass(frozen=True)
class DeleteOrderCommand:
    user: object
    order_id: int


class DeleteOrderUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: DeleteOrderCommand) -> None:
        order = OrderQueryService.get_owned(user=cmd.user, order_id=cmd.order_id, for_update=True)
        ensure_deletable(order.status)
        order_id = order.id
        order.delete()
        logger.info("order %s deleted by buyer %s", order_id, cmd.user.id)
