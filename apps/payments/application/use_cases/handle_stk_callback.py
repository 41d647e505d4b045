from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from django.db import DatabaseError, transaction

from apps.notifications.application.use_cases.notify_order_event import NotifyOrderEventUseCase
from apps.notifications.domain.types import OrderEvent
from apps.orders.domain.status import PaymentStatus
from apps.orders.models import Order
from apps.payments.application.config import MpesaConfig
from apps.payments.domain.callback import StkCallback, parse_stk_callback
from apps.payments.domain.errors import CallbackAuthError
from apps.payments.domain.payment_details import PaymentDetails
from apps.payments.domain.reconciliation import (
    NO_MATCHING_ORDER,
    RECORD_FAILED,
    Acknowledgement,
    PaymentState,
    reconcile,
)

from .order_access import now_iso, save_payment

logger = logging.getLogger("soko.payments")


def verify_callback_secret(config: MpesaConfig, provided: str | None) -> None:
    expected = config.callback_secret or ""
    if not expected or not hmac.compare_digest(expected.encode(), (provided or "").encode()):
        raise CallbackAuthError("Forbidden: Invalid callback secret.")


def _order_id(ref) -> int | None:
    value = str(ref or "").strip()
    return int(value) if value.isdigit() else None


def resolve_order(order_ref, callback: StkCallback) -> Order | None:
    """Path id first, then the checkout request id, then the receipt number."""
    qs = Order.objects.select_for_update()
    order_id = _order_id(order_ref)
    if order_id is not None:
        order = qs.filter(id=order_id).first()
        if order is not None:
            return order
    if callback.checkout_request_id:
        order = qs.filter(payment_details__checkout_request_id=callback.checkout_request_id).first()
        if order is not None:
            return order
    if callback.receipt:
        return qs.filter(payment_details__transaction_id=callback.receipt).first()
    return None


@dataclass(frozen=True)
class HandleStkCallbackCommand:
    order_ref: str | None
    secret: str | None
    body: dict
    config: MpesaConfig


class HandleStkCallbackUseCase:
    @staticmethod
    def execute(cmd: HandleStkCallbackCommand) -> Acknowledgement:
        verify_callback_secret(cmd.config, cmd.secret)
        callback = parse_stk_callback(cmd.body)
        logger.info(
            "stk callback received order_ref=%s checkout=%s result=%s",
            cmd.order_ref,
            callback.checkout_request_id,
            callback.result_code,
        )
        try:
            return HandleStkCallbackUseCase._apply(cmd.order_ref, callback)
        except DatabaseError:
            logger.exception("failed to record stk callback for order_ref=%s", cmd.order_ref)
            return RECORD_FAILED

    @staticmethod
    @transaction.atomic
    def _apply(order_ref, callback: StkCallback) -> Acknowledgement:
        order = resolve_order(order_ref, callback)
        if order is None:
            logger.warning(
                "no order matches stk callback order_ref=%s checkout=%s receipt=%s",
                order_ref,
                callback.checkout_request_id,
                callback.receipt,
            )
            return NO_MATCHING_ORDER

        state = PaymentState(
            payment_status=order.payment_status,
            details=PaymentDetails.from_dict(order.payment_details),
        )
        outcome = reconcile(state, callback, now_iso())
        if not outcome.changed:
            logger.info("duplicate stk callback for already paid order %s", order.id)
            return outcome.acknowledgement

        save_payment(order, details=outcome.state.details, payment_status=outcome.state.payment_status)
        logger.info("order %s payment %s", order.id, outcome.state.payment_status)
        if outcome.state.payment_status == PaymentStatus.PAID:
            NotifyOrderEventUseCase.on_commit(order.id, OrderEvent.PAYMENT_RECEIVED)
        return outcome.acknowledgement
