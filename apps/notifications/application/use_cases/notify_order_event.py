from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.template.loader import render_to_string

from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.domain.types import EmailMessage, OrderEvent
from apps.notifications.infrastructure.router import EmailGatewayRouter
from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order

logger = logging.getLogger("soko.notifications")


_SUBJECTS = {
    OrderEvent.PLACED: "Order #{id} confirmed",
    OrderEvent.STATUS_CHANGED: "Order #{id} update",
    OrderEvent.CANCELLED: "Order #{id} cancelled",
    OrderEvent.PAYMENT_RECEIVED: "Payment received for order #{id}",
}

_TEMPLATES = {
    OrderEvent.PLACED: "notifications/order_placed.txt",
    OrderEvent.STATUS_CHANGED: "notifications/status_changed.txt",
    OrderEvent.CANCELLED: "notifications/cancelled.txt",
    OrderEvent.PAYMENT_RECEIVED: "notifications/payment_received.txt",
}


@dataclass(frozen=True)
class NotifyOrderEventCommand:
    order_id: int
    event: OrderEvent


def _display_name(user) -> str:
    profile = getattr(user, "account_profile", None)
    if profile is not None and profile.full_name:
        return profile.full_name
    return user.get_full_name() or user.email or user.get_username()


def _buyer_message(order, event: OrderEvent) -> EmailMessage | None:
    buyer = order.user
    if not buyer.email:
        return None
    context = {
        "name": _display_name(buyer),
        "order": order,
        "status_label": OrderStatus(order.status).label,
        "receipt": (order.payment_details or {}).get("transaction_id") or "",
    }
    return EmailMessage(
        to_email=buyer.email,
        subject=_SUBJECTS[event].format(id=order.id),
        text=render_to_string(_TEMPLATES[event], context).strip(),
    )


def _seller_messages(order) -> list[EmailMessage]:
    messages = []
    for seller in order.sellers.all():
        if not seller.email:
            continue
        lines = [
            line
            for line in order.products or []
            if int(line.get("product", {}).get("seller_id") or 0) == seller.id
        ]
        messages.append(
            EmailMessage(
                to_email=seller.email,
                subject=f"New order #{order.id}",
                text=render_to_string(
                    "notifications/seller_new_order.txt",
                    {"name": _display_name(seller), "order": order, "lines": lines},
                ).strip(),
            )
        )
    return messages


class NotifyOrderEventUseCase:
    """Best-effort order emails. Never raises into the caller."""

    @staticmethod
    def execute(cmd: NotifyOrderEventCommand) -> int:
        order = Order.objects.select_related("user").filter(id=cmd.order_id).first()
        if order is None:
            logger.warning("notification skipped; order %s not found", cmd.order_id)
            return 0

        messages = []
        buyer_message = _buyer_message(order, cmd.event)
        if buyer_message is not None:
            messages.append(buyer_message)
        if cmd.event == OrderEvent.PLACED:
            messages.extend(_seller_messages(order))

        try:
            provider = EmailGatewayRouter.resolve()
        except EmailGatewayError:
            logger.exception("email provider unavailable; %s notice for order %s dropped", cmd.event, order.id)
            return 0

        sent = 0
        for message in messages:
            try:
                provider.gateway.send_email(message=message, from_email=provider.default_from_email)
                sent += 1
            except EmailGatewayError:
                logger.exception("failed to send %s notice for order %s to %s", cmd.event, order.id, message.to_email)
        return sent

    @staticmethod
    def on_commit(order_id: int, event: OrderEvent) -> None:
        transaction.on_commit(
            lambda: NotifyOrderEventUseCase.execute(NotifyOrderEventCommand(order_id=order_id, event=event))
        )
