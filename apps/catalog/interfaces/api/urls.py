from django.urls import path

from .views import (
    ProductDetailAPI,
    ProductListAPI,
    SellerProductDetailAPI,
    SellerProductDiscountAPI,
    SellerProductsAPI,
)

urlpatterns = [
    path("products/", ProductListAPI.as_view(), name="api_products"),
    path("products/<int:product_id>/", ProductDetailAPI.as_view(), name="api_product_detail"),
    path("seller/products/", SellerProductsAPI.as_view(), name="api_seller_products"),
    path(
        "seller/products/<int:product_id>/",
        SellerProductDetailAPI.as_view(),
        name="api_seller_product_detail",
    ),
    path(
        "seller/products/<int:product_id>/discount/",
        SellerProductDiscountAPI.as_view(),
        name="api_seller_product_discount",
    ),
]
