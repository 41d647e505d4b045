from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.orders.models import Order
from apps.payments.application.config import MpesaConfig
from apps.payments.domain.payment_details import PaymentDetails
from apps.payments.domain.reconciliation import ACCEPTED, NO_MATCHING_ORDER, Acknowledgement

from .order_access import now_iso, save_payment
from .handle_stk_callback import verify_callback_secret

logger = logging.getLogger("soko.payments")

KIND_RESULT = "result"
KIND_TIMEOUT = "timeout"


@dataclass(frozen=True)
class RecordStatusQueryResultCommand:
    order_ref: str | None
    secret: str | None
    kind: str
    body: dict
    config: MpesaConfig


class RecordStatusQueryResultUseCase:
    """Stores asynchronous Transaction Status results and queue timeouts as received."""

    @staticmethod
    @transaction.atomic
    def execute(cmd: RecordStatusQueryResultCommand) -> Acknowledgement:
        verify_callback_secret(cmd.config, cmd.secret)
        value = str(cmd.order_ref or "").strip()
        order = Order.objects.select_for_update().filter(id=int(value)).first() if value.isdigit() else None
        if order is None:
            logger.warning("no order matches transaction status %s for order_ref=%s", cmd.kind, cmd.order_ref)
            return NO_MATCHING_ORDER

        details = PaymentDetails.from_dict(order.payment_details).merge(
            status_query_result={"kind": cmd.kind, "received_at": now_iso(), "body": cmd.body},
        )
        save_payment(order, details=details)
        logger.info("transaction status %s recorded for order %s", cmd.kind, order.id)
        return ACCEPTED
