from __future__ import annotations

from django.utils import timezone

from apps.accounts.application.services.identity_service import AccountIdentityService
from apps.orders.models import Order
from apps.payments.domain.errors import PaymentNotFoundError, PaymentPermissionError
from apps.payments.domain.payment_details import PaymentDetails


def now_iso() -> str:
    return timezone.now().isoformat()


def order_for_actor(*, actor, order_id, for_update: bool = False) -> Order:
    qs = Order.objects.select_for_update() if for_update else Order.objects
    order = qs.filter(id=order_id).first()
    if order is None:
        raise PaymentNotFoundError("Order not found.")
    if order.user_id != actor.id and not AccountIdentityService.is_admin(actor):
        raise PaymentPermissionError("Not authorized to pay for this order.")
    return order


def save_payment(order: Order, *, details: PaymentDetails, payment_status: str | None = None, **extra) -> None:
    order.payment_details = details.to_dict()
    update_fields = ["payment_details"]
    if payment_status is not None:
        order.payment_status = payment_status
        update_fields.append("payment_status")
    for name, value in extra.items():
        setattr(order, name, value)
        update_fields.append(name)
    order.save(update_fields=update_fields)
