from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.notifications.application.use_cases.notify_order_event import NotifyOrderEventUseCase
from apps.notifications.domain.types import OrderEvent
from apps.orders.domain.status import PaymentStatus
from apps.orders.models import Order
from apps.payments.application.config import MpesaConfig
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.domain.callback import StkCallback
from apps.payments.domain.errors import GatewayError, PaymentValidationError
from apps.payments.domain.payment_details import PaymentDetails
from apps.payments.domain.reconciliation import PaymentState, reconcile

from .order_access import now_iso, order_for_actor, save_payment

logger = logging.getLogger("soko.payments")

MODE_TRANSACTION_STATUS = "transaction_status"
MODE_STK_QUERY = "stk_query"


@dataclass(frozen=True)
class QueryPaymentStatusCommand:
    actor: object
    order_id: int
    config: MpesaConfig


@dataclass(frozen=True)
class QueryPaymentStatusResult:
    order: Order
    mode: str
    response: dict
    placeholder_credential: bool = False


class QueryPaymentStatusUseCase:
    """Ask the provider where a payment stands.

    A recorded receipt triggers a Transaction Status query, whose real answer
    arrives later on the result callback. Otherwise the STK push is queried by
    checkout request id and a definitive answer is reconciled immediately.
    """

    @staticmethod
    def execute(cmd: QueryPaymentStatusCommand) -> QueryPaymentStatusResult:
        order = order_for_actor(actor=cmd.actor, order_id=cmd.order_id)
        details = PaymentDetails.from_dict(order.payment_details)
        if not details.transaction_id and not details.checkout_request_id:
            raise PaymentValidationError("No M-Pesa transaction recorded for this order.")

        gateway = PaymentGatewayFacade.get(cmd.config)
        placeholder = False
        try:
            if details.transaction_id:
                mode = MODE_TRANSACTION_STATUS
                ack = gateway.transaction_status(order_id=order.id, transaction_id=details.transaction_id)
                response, placeholder = ack.raw, ack.placeholder_credential
            else:
                mode = MODE_STK_QUERY
                response = gateway.stk_query(checkout_request_id=details.checkout_request_id)
        except GatewayError as exc:
            logger.warning("payment status query for order %s failed: %s", order.id, exc.message)
            QueryPaymentStatusUseCase._record(
                order.id, query_error=exc.details if exc.details is not None else exc.message
            )
            raise

        callback = StkCallback.from_query_response(response) if mode == MODE_STK_QUERY else None
        order = QueryPaymentStatusUseCase._record(order.id, query_error=None, callback=callback)
        return QueryPaymentStatusResult(
            order=order, mode=mode, response=response, placeholder_credential=placeholder
        )

    @staticmethod
    @transaction.atomic
    def _record(order_id: int, *, query_error, callback: StkCallback | None = None) -> Order:
        order = Order.objects.select_for_update().get(id=order_id)
        now = now_iso()
        state = PaymentState(
            payment_status=order.payment_status,
            details=PaymentDetails.from_dict(order.payment_details).merge(
                last_queried_at=now, query_error=query_error
            ),
        )
        changed = False
        if callback is not None:
            outcome = reconcile(state, callback, now)
            state, changed = outcome.state, outcome.changed

        save_payment(order, details=state.details, payment_status=state.payment_status)
        if changed:
            logger.info("order %s payment %s after status query", order.id, state.payment_status)
            if state.payment_status == PaymentStatus.PAID:
                NotifyOrderEventUseCase.on_commit(order.id, OrderEvent.PAYMENT_RECEIVED)
        return order
