from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from apps.orders.domain.status import PaymentMethod, PaymentStatus
from apps.orders.models import Order
from apps.payments.application.config import MpesaConfig
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.domain.errors import GatewayError, PaymentConflictError
from apps.payments.domain.payment_details import PaymentDetails
from apps.payments.domain.policies import normalize_msisdn, validate_amount

from .order_access import now_iso, order_for_actor, save_payment

logger = logging.getLogger("soko.payments")

CONFIRMATION_MESSAGE = "STK push sent. Check your phone to complete the payment."


@dataclass(frozen=True)
class InitiateStkPushCommand:
    actor: object
    order_id: int
    phone_number: str
    amount: object
    config: MpesaConfig


@dataclass(frozen=True)
class InitiateStkPushResult:
    order: Order
    checkout_request_id: str
    raw_response: dict
    message: str = CONFIRMATION_MESSAGE


def _ensure_payable(order: Order) -> None:
    if order.cancelled:
        raise PaymentConflictError("Order is cancelled.")
    if order.payment_status == PaymentStatus.PAID:
        raise PaymentConflictError("Order is already paid.")


class InitiateStkPushUseCase:
    @staticmethod
    def execute(cmd: InitiateStkPushCommand) -> InitiateStkPushResult:
        # Input is validated before the order is touched or the provider is called.
        amount = validate_amount(cmd.amount)
        phone = normalize_msisdn(cmd.phone_number)

        order = order_for_actor(actor=cmd.actor, order_id=cmd.order_id)
        _ensure_payable(order)

        gateway = PaymentGatewayFacade.get(cmd.config)
        try:
            ack = gateway.stk_push(order_id=order.id, phone=phone, amount=amount)
        except GatewayError as exc:
            logger.warning("stk push for order %s failed: %s", order.id, exc.message)
            InitiateStkPushUseCase._record_failure(order.id, exc)
            raise

        order = InitiateStkPushUseCase._record_initiated(order.id, amount=amount, ack=ack)
        logger.info("stk push initiated for order %s checkout=%s", order.id, ack.checkout_request_id)
        return InitiateStkPushResult(
            order=order,
            checkout_request_id=ack.checkout_request_id,
            raw_response=ack.raw,
        )

    @staticmethod
    @transaction.atomic
    def _record_initiated(order_id: int, *, amount: int, ack) -> Order:
        order = Order.objects.select_for_update().get(id=order_id)
        if order.payment_status == PaymentStatus.PAID:
            # A callback settled the order while the push was in flight.
            return order
        details = PaymentDetails.from_dict(order.payment_details).merge(
            method=PaymentMethod.MPESA.value,
            initiated_at=now_iso(),
            amount=amount,
            checkout_request_id=ack.checkout_request_id,
            response_code=ack.response_code,
            raw_response=ack.raw,
            error=None,
        )
        save_payment(
            order,
            details=details,
            payment_status=PaymentStatus.INITIATED.value,
            payment_method=PaymentMethod.MPESA.value,
        )
        return order

    @staticmethod
    @transaction.atomic
    def _record_failure(order_id: int, exc: GatewayError) -> None:
        order = Order.objects.select_for_update().get(id=order_id)
        if order.payment_status == PaymentStatus.PAID:
            return
        details = PaymentDetails.from_dict(order.payment_details).merge(
            method=PaymentMethod.MPESA.value,
            error=exc.details if exc.details is not None else exc.message,
            failed_at=now_iso(),
        )
        save_payment(order, details=details, payment_status=PaymentStatus.FAILED.value)
