from __future__ import annotations

from apps.accounts.application.services.identity_service import AccountIdentityService
from apps.orders.domain.errors import OrderNotFoundError, OrderPermissionError
from apps.orders.domain.policies import seller_owns_any_line
from apps.orders.models import Order


class OrderQueryService:
    @staticmethod
    def get(order_id: int, *, for_update: bool = False) -> Order:
        qs = Order.objects.select_for_update() if for_update else Order.objects
        order = qs.filter(id=order_id).first()
        if order is None:
            raise OrderNotFoundError("Order not found.")
        return order

    @staticmethod
    def get_owned(*, user, order_id: int, for_update: bool = False) -> Order:
        """Buyer-scoped lookup; other users' orders look like missing ones."""
        order = OrderQueryService.get(order_id, for_update=for_update)
        if order.user_id != user.id:
            raise OrderNotFoundError("Order not found.")
        return order

    @staticmethod
    def get_for_seller(*, user, order_id: int, for_update: bool = False) -> Order:
        order = OrderQueryService.get(order_id, for_update=for_update)
        if AccountIdentityService.is_admin(user):
            return order
        if not seller_owns_any_line(order.products or [], user.id):
            raise OrderPermissionError("Not authorized to manage this order.")
        return order

    @staticmethod
    def get_visible(*, user, order_id: int) -> Order:
        order = OrderQueryService.get(order_id)
        if order.user_id == user.id or AccountIdentityService.is_admin(user):
            return order
        if seller_owns_any_line(order.products or [], user.id):
            return order
        raise OrderNotFoundError("Order not found.")

    @staticmethod
    def for_buyer(user):
        return Order.objects.filter(user=user).order_by("-ordered_at", "-id")

    @staticmethod
    def for_seller(user):
        return Order.objects.filter(sellers=user).distinct().order_by("-ordered_at", "-id")

    @staticmethod
    def all_orders():
        return Order.objects.select_related("user").order_by("-ordered_at", "-id")
