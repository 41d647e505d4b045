from django.urls import path

from .views import CartAPI, CartItemDetailAPI, CartItemsAPI

urlpatterns = [
    path("cart/", CartAPI.as_view(), name="api_cart"),
    path("cart/items/", CartItemsAPI.as_view(), name="api_cart_items"),
    path("cart/items/<int:product_id>/", CartItemDetailAPI.as_view(), name="api_cart_item_detail"),
]
