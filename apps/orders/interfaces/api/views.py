from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from apps.accounts.interfaces.api.permissions import IsActiveAccount, IsPlatformAdmin, IsSeller
from apps.catalog.domain.errors import CatalogDomainError
from apps.common.responses import api_error, api_success
from apps.orders.application.use_cases.best_sellers import BestSellersCommand, BestSellersUseCase
from apps.orders.application.use_cases.cancel_order import (
    CancelOrderCommand,
    CancelOrderUseCase,
    OverrideCancelOrderCommand,
    OverrideCancelOrderUseCase,
)
from apps.orders.application.use_cases.change_order_status import ChangeOrderStatusCommand, ChangeOrderStatusUseCase
from apps.orders.application.use_cases.delete_order import DeleteOrderCommand, DeleteOrderUseCase
from apps.orders.application.use_cases.place_order import PlaceOrderCommand, PlaceOrderUseCase
from apps.orders.application.use_cases.seller_analytics import SellerAnalyticsCommand, SellerAnalyticsUseCase
from apps.orders.application.use_cases.update_payment_status import (
    UpdatePaymentStatusCommand,
    UpdatePaymentStatusUseCase,
)
from apps.orders.domain.errors import (
    OrderConflictError,
    OrderDomainError,
    OrderNotFoundError,
    OrderPermissionError,
)
from apps.orders.interfaces.api.serializers import (
    BestSellersQuerySerializer,
    DirectOrderSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    PaymentStatusSerializer,
    PlaceOrderSerializer,
)
from apps.orders.services.order_query_service import OrderQueryService


def _order_error(exc: OrderDomainError):
    if isinstance(exc, OrderNotFoundError):
        return api_error(message=str(exc), http_status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, OrderPermissionError):
        return api_error(message=str(exc), http_status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, OrderConflictError):
        return api_error(message=str(exc), field=exc.field, http_status=status.HTTP_409_CONFLICT)
    return api_error(message=str(exc), field=exc.field)


def _place(request, serializer_class, *, direct: bool):
    serializer = serializer_class(data=request.data)
    if not serializer.is_valid():
        return api_error(message="Invalid input.", details=serializer.errors)
    data = serializer.validated_data
    items = None
    if direct:
        items = tuple((item["product_id"], item["quantity"]) for item in data["items"])
    try:
        order = PlaceOrderUseCase.execute(
            PlaceOrderCommand(
                user=request.user,
                address=data["address"],
                phone_number=data["phone_number"],
                payment_method=data.get("payment_method") or None,
                items=items,
            )
        )
    except OrderDomainError as exc:
        return _order_error(exc)
    except CatalogDomainError as exc:
        return api_error(message=str(exc), field=exc.field)
    return api_success(OrderSerializer(order).data, http_status=status.HTTP_201_CREATED)


class PlaceOrderAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount]

    def post(self, request):
        return _place(request, PlaceOrderSerializer, direct=False)


class DirectOrderAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount]

    def post(self, request):
        return _place(request, DirectOrderSerializer, direct=True)


class MyOrdersAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return api_success(OrderSerializer(OrderQueryService.for_buyer(request.user), many=True).data)


class OrderDetailAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, order_id: int):
        try:
            order = OrderQueryService.get_visible(user=request.user, order_id=order_id)
        except OrderDomainError as exc:
            return _order_error(exc)
        return api_success(OrderSerializer(order).data)

    def delete(self, request, order_id: int):
        try:
            DeleteOrderUseCase.execute(DeleteOrderCommand(user=request.user, order_id=order_id))
        except OrderDomainError as exc:
            return _order_error(exc)
        return api_success({"deleted": True})


class CancelOrderAPI(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id: int):
        try:
            order = CancelOrderUseCase.execute(CancelOrderCommand(user=request.user, order_id=order_id))
        except OrderDomainError as exc:
            return _order_error(exc)
        return api_success(OrderSerializer(order).data)


class SellerOrdersAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount, IsSeller]

    def get(self, request):
        return api_success(OrderSerializer(OrderQueryService.for_seller(request.user), many=True).data)


class OrderStatusAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount, IsSeller]

    def post(self, request, order_id: int):
        serializer = OrderStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)
        try:
            order = ChangeOrderStatusUseCase.execute(
                ChangeOrderStatusCommand(
                    actor=request.user,
                    order_id=order_id,
                    status=serializer.validated_data["status"],
                )
            )
        except OrderDomainError as exc:
            return _order_error(exc)
        return api_success(OrderSerializer(order).data)


class PaymentStatusOverrideAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount, IsSeller]

    def post(self, request, order_id: int):
        serializer = PaymentStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)
        try:
            order = UpdatePaymentStatusUseCase.execute(
                UpdatePaymentStatusCommand(
                    actor=request.user,
                    order_id=order_id,
                    payment_status=serializer.validated_data["payment_status"],
                )
            )
        except OrderDomainError as exc:
            return _order_error(exc)
        return api_success(OrderSerializer(order).data)


class SellerAnalyticsAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount, IsSeller]

    def get(self, request):
        result = SellerAnalyticsUseCase.execute(SellerAnalyticsCommand(seller=request.user))
        return api_success(
            {
                "categories": [
                    {"category": c.category, "quantity": c.quantity, "earnings": str(c.earnings)}
                    for c in result.categories
                ],
                "total_earnings": str(result.total_earnings),
            }
        )


class AdminOrdersAPI(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def get(self, request):
        return api_success(OrderSerializer(OrderQueryService.all_orders(), many=True).data)


class AdminBestSellersAPI(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def get(self, request):
        serializer = BestSellersQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)
        try:
            rankings = BestSellersUseCase.execute(BestSellersCommand(**serializer.validated_data))
        except OrderDomainError as exc:
            return _order_error(exc)
        return api_success(
            [
                {
                    "seller_id": r.seller_id,
                    "seller_name": r.seller_name,
                    "total_revenue": str(r.total_revenue),
                    "total_orders": r.total_orders,
                    "total_products": r.total_products,
                }
                for r in rankings
            ]
        )


class AdminOrderStatusAPI(OrderStatusAPI):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]


class AdminCancelOrderAPI(APIView):
    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def post(self, request, order_id: int):
        try:
            order = OverrideCancelOrderUseCase.execute(
                OverrideCancelOrderCommand(actor=request.user, order_id=order_id)
            )
        except OrderDomainError as exc:
            return _order_error(exc)
        return api_success(OrderSerializer(order).data)
