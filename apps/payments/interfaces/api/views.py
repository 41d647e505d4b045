from __future__ import annotations

from django.apps import apps as django_apps
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.common.responses import api_error, api_success
from apps.payments.application.use_cases.handle_stk_callback import (
    HandleStkCallbackCommand,
    HandleStkCallbackUseCase,
)
from apps.payments.application.use_cases.initiate_stk_push import InitiateStkPushCommand, InitiateStkPushUseCase
from apps.payments.application.use_cases.query_payment_status import (
    QueryPaymentStatusCommand,
    QueryPaymentStatusUseCase,
)
from apps.payments.application.use_cases.record_status_query_result import (
    KIND_RESULT,
    KIND_TIMEOUT,
    RecordStatusQueryResultCommand,
    RecordStatusQueryResultUseCase,
)
from apps.payments.application.use_cases.order_access import order_for_actor
from apps.payments.domain.errors import (
    CallbackAuthError,
    GatewayError,
    GatewayHTTPError,
    InvalidCallbackPayload,
    PaymentConflictError,
    PaymentDomainError,
    PaymentNotFoundError,
    PaymentPermissionError,
)
from apps.payments.interfaces.api.serializers import OrderPaymentSerializer, StkPushSerializer


def _mpesa_config():
    return django_apps.get_app_config("payments").mpesa_config


def _payment_error(exc: PaymentDomainError):
    if isinstance(exc, PaymentNotFoundError):
        return api_error(message=str(exc), http_status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, PaymentPermissionError):
        return api_error(message=str(exc), http_status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, PaymentConflictError):
        return api_error(message=str(exc), http_status=status.HTTP_409_CONFLICT)
    return api_error(message=str(exc), field=exc.field)


def _gateway_error(exc: GatewayError):
    if isinstance(exc, GatewayHTTPError):
        return api_error(message="M-Pesa API Error", details=exc.details, http_status=exc.status_code)
    return api_error(message=exc.message, details=exc.details, http_status=exc.status_code)


def _callback_rejection(exc: PaymentDomainError):
    if isinstance(exc, CallbackAuthError):
        return Response({"ResultCode": 1, "ResultDesc": str(exc)}, status=status.HTTP_403_FORBIDDEN)
    return Response({"ResultCode": 1, "ResultDesc": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


class StkPushAPI(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"

    def post(self, request):
        serializer = StkPushSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Amount, phone number, and order_id are required.", details=serializer.errors)
        data = serializer.validated_data
        try:
            result = InitiateStkPushUseCase.execute(
                InitiateStkPushCommand(
                    actor=request.user,
                    order_id=data["order_id"],
                    phone_number=data["phone_number"],
                    amount=data["amount"],
                    config=_mpesa_config(),
                )
            )
        except PaymentDomainError as exc:
            return _payment_error(exc)
        except GatewayError as exc:
            return _gateway_error(exc)
        return api_success(
            {
                "message": result.message,
                "order_id": result.order.id,
                "checkout_request_id": result.checkout_request_id,
                "response": result.raw_response,
            }
        )


class StkCallbackAPI(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, order_ref: str):
        try:
            ack = HandleStkCallbackUseCase.execute(
                HandleStkCallbackCommand(
                    order_ref=order_ref,
                    secret=request.query_params.get("secret"),
                    body=request.data,
                    config=_mpesa_config(),
                )
            )
        except (CallbackAuthError, InvalidCallbackPayload) as exc:
            return _callback_rejection(exc)
        return Response(ack.as_dict(), status=status.HTTP_200_OK)


class _StatusQueryCallbackAPI(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    kind = ""

    def post(self, request, order_ref: str):
        try:
            ack = RecordStatusQueryResultUseCase.execute(
                RecordStatusQueryResultCommand(
                    order_ref=order_ref,
                    secret=request.query_params.get("secret"),
                    kind=self.kind,
                    body=request.data if isinstance(request.data, dict) else {},
                    config=_mpesa_config(),
                )
            )
        except CallbackAuthError as exc:
            return _callback_rejection(exc)
        return Response(ack.as_dict(), status=status.HTTP_200_OK)


class TransactionResultCallbackAPI(_StatusQueryCallbackAPI):
    kind = KIND_RESULT


class TransactionTimeoutCallbackAPI(_StatusQueryCallbackAPI):
    kind = KIND_TIMEOUT


class OrderPaymentAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, order_id: int):
        try:
            order = order_for_actor(actor=request.user, order_id=order_id)
        except PaymentDomainError as exc:
            return _payment_error(exc)
        return api_success(OrderPaymentSerializer(order).data)


class TransactionStatusAPI(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"

    def post(self, request, order_id: int):
        try:
            result = QueryPaymentStatusUseCase.execute(
                QueryPaymentStatusCommand(actor=request.user, order_id=order_id, config=_mpesa_config())
            )
        except PaymentDomainError as exc:
            return _payment_error(exc)
        except GatewayError as exc:
            return _gateway_error(exc)
        return api_success(
            {
                "mode": result.mode,
                "response": result.response,
                "placeholder_credential": result.placeholder_credential,
                "order": OrderPaymentSerializer(result.order).data,
            }
        )
