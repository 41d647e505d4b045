from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from apps.accounts.interfaces.api.permissions import IsActiveAccount
from apps.cart.interfaces.api.serializers import AddToCartSerializer
from apps.cart.services.cart_service import CartService
from apps.catalog.domain.errors import ProductNotFoundError
from apps.common.responses import api_error, api_success


class CartAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount]

    def get(self, request):
        return api_success(CartService.summary(user=request.user))


class CartItemsAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount]

    def post(self, request):
        serializer = AddToCartSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)
        try:
            CartService.add_product(user=request.user, product_id=serializer.validated_data["product_id"])
        except ProductNotFoundError as exc:
            return api_error(message=str(exc), http_status=status.HTTP_404_NOT_FOUND)
        return api_success(CartService.summary(user=request.user))


class CartItemDetailAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount]

    def delete(self, request, product_id: int):
        CartService.remove_product(user=request.user, product_id=product_id)
        return api_success(CartService.summary(user=request.user))
