from django.urls import path

from apps.payments.interfaces.api.views import (
    OrderPaymentAPI,
    StkCallbackAPI,
    StkPushAPI,
    TransactionResultCallbackAPI,
    TransactionStatusAPI,
    TransactionTimeoutCallbackAPI,
)

urlpatterns = [
    path("mpesa/stk-push/", StkPushAPI.as_view(), name="mpesa_stk_push"),
    path(
        "mpesa/callback/transaction/<str:order_ref>/",
        TransactionResultCallbackAPI.as_view(),
        name="mpesa_transaction_result",
    ),
    path(
        "mpesa/callback/timeout/<str:order_ref>/",
        TransactionTimeoutCallbackAPI.as_view(),
        name="mpesa_transaction_timeout",
    ),
    path("mpesa/callback/<str:order_ref>/", StkCallbackAPI.as_view(), name="mpesa_callback"),
    path("mpesa/orders/<int:order_id>/", OrderPaymentAPI.as_view(), name="mpesa_order_payment"),
    path("mpesa/transaction-status/<int:order_id>/", TransactionStatusAPI.as_view(), name="mpesa_transaction_status"),
]
