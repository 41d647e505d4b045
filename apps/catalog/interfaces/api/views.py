from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from apps.accounts.interfaces.api.permissions import IsActiveAccount, IsSeller
from apps.catalog.domain.errors import ProductNotFoundError, ProductOwnershipError, ProductValidationError
from apps.catalog.interfaces.api.serializers import DiscountSerializer, ProductSerializer, ProductWriteSerializer
from apps.catalog.models import Product
from apps.catalog.services.product_service import ProductService
from apps.common.responses import api_error, api_success


class ProductListAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Product.objects.filter(is_active=True).order_by("-created_at")
        category = (request.query_params.get("category") or "").strip()
        if category:
            qs = qs.filter(category__iexact=category)
        return api_success(ProductSerializer(qs, many=True).data)


class ProductDetailAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, product_id: int):
        product = Product.objects.filter(id=product_id).first()
        if product is None:
            return api_error(message="Product not found.", http_status=status.HTTP_404_NOT_FOUND)
        return api_success(ProductSerializer(product).data)


class SellerProductsAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount, IsSeller]

    def get(self, request):
        qs = Product.objects.filter(seller=request.user).order_by("-created_at")
        return api_success(ProductSerializer(qs, many=True).data)

    def post(self, request):
        serializer = ProductWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)
        try:
            product = ProductService.create_product(seller=request.user, **serializer.validated_data)
        except ProductValidationError as exc:
            return api_error(message=str(exc), field=exc.field)
        return api_success(ProductSerializer(product).data, http_status=status.HTTP_201_CREATED)


class SellerProductDetailAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount, IsSeller]

    def put(self, request, product_id: int):
        serializer = ProductWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)
        try:
            product = ProductService.update_product(
                actor=request.user, product_id=product_id, **serializer.validated_data
            )
        except ProductNotFoundError as exc:
            return api_error(message=str(exc), http_status=status.HTTP_404_NOT_FOUND)
        except ProductOwnershipError as exc:
            return api_error(message=str(exc), http_status=status.HTTP_403_FORBIDDEN)
        except ProductValidationError as exc:
            return api_error(message=str(exc), field=exc.field)
        return api_success(ProductSerializer(product).data)

    def delete(self, request, product_id: int):
        try:
            ProductService.delete_product(actor=request.user, product_id=product_id)
        except ProductNotFoundError as exc:
            return api_error(message=str(exc), http_status=status.HTTP_404_NOT_FOUND)
        except ProductOwnershipError as exc:
            return api_error(message=str(exc), http_status=status.HTTP_403_FORBIDDEN)
        return api_success({"deleted": True})


class SellerProductDiscountAPI(APIView):
    permission_classes = [IsAuthenticated, IsActiveAccount, IsSeller]

    def post(self, request, product_id: int):
        serializer = DiscountSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)
        data = serializer.validated_data
        try:
            product = ProductService.set_discount(
                actor=request.user,
                product_id=product_id,
                percentage=data["percentage"],
                starts_at=data["starts_at"],
                ends_at=data["ends_at"],
            )
        except ProductNotFoundError as exc:
            return api_error(message=str(exc), http_status=status.HTTP_404_NOT_FOUND)
        except ProductOwnershipError as exc:
            return api_error(message=str(exc), http_status=status.HTTP_403_FORBIDDEN)
        except ProductValidationError as exc:
            return api_error(message=str(exc), field=exc.field)
        return api_success(ProductSerializer(product).data)
