from django.urls import path

from apps.orders.interfaces.api.views import (
    AdminBestSellersAPI,
    AdminCancelOrderAPI,
    AdminOrdersAPI,
    AdminOrderStatusAPI,
    CancelOrderAPI,
    DirectOrderAPI,
    MyOrdersAPI,
    OrderDetailAPI,
    OrderStatusAPI,
    PaymentStatusOverrideAPI,
    PlaceOrderAPI,
    SellerAnalyticsAPI,
    SellerOrdersAPI,
)

urlpatterns = [
    path("orders/", PlaceOrderAPI.as_view(), name="orders_place"),
    path("orders/direct/", DirectOrderAPI.as_view(), name="orders_place_direct"),
    path("orders/me/", MyOrdersAPI.as_view(), name="orders_mine"),
    path("orders/<int:order_id>/", OrderDetailAPI.as_view(), name="orders_detail"),
    path("orders/<int:order_id>/cancel/", CancelOrderAPI.as_view(), name="orders_cancel"),
    path("seller/orders/", SellerOrdersAPI.as_view(), name="seller_orders"),
    path("seller/orders/<int:order_id>/status/", OrderStatusAPI.as_view(), name="seller_order_status"),
    path(
        "seller/orders/<int:order_id>/payment-status/",
        PaymentStatusOverrideAPI.as_view(),
        name="seller_order_payment_status",
    ),
    path("seller/analytics/", SellerAnalyticsAPI.as_view(), name="seller_analytics"),
    path("admin/orders/", AdminOrdersAPI.as_view(), name="admin_orders"),
    path("admin/best-sellers/", AdminBestSellersAPI.as_view(), name="admin_best_sellers"),
    path("admin/orders/<int:order_id>/status/", AdminOrderStatusAPI.as_view(), name="admin_order_status"),
    path("admin/orders/<int:order_id>/cancel/", AdminCancelOrderAPI.as_view(), name="admin_order_cancel"),
]
