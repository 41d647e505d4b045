from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.application.services.identity_service import AccountIdentityService
from apps.accounts.application.use_cases.login import LoginCommand, LoginUseCase
from apps.accounts.application.use_cases.register_user import RegisterUserCommand, RegisterUserUseCase
from apps.accounts.domain.errors import (
    AccountAlreadyExistsError,
    AccountValidationError,
    InvalidCredentialsError,
)
from apps.accounts.interfaces.api.serializers import LoginSerializer, RegisterSerializer
from apps.accounts.services.audit_service import AccountAuditService, AuditContext
from apps.common.responses import api_error, api_success, client_ip


def _token_pair(user) -> dict:
    refresh = RefreshToken.for_user(user)
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


def _audit_context(request) -> AuditContext:
    return AuditContext(
        ip_address=client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT", ""),
    )


def _user_payload(user) -> dict:
    profile = AccountIdentityService.profile_for(user)
    return {
        "user_id": user.id,
        "email": user.email,
        "full_name": profile.full_name if profile else "",
        "phone": profile.phone if profile else "",
        "address": profile.address if profile else "",
        "role": AccountIdentityService.role_of(user).value,
    }


class RegisterAPI(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)

        data = serializer.validated_data
        try:
            result = RegisterUserUseCase.execute(
                RegisterUserCommand(
                    full_name=data["full_name"],
                    email=data["email"],
                    password=data["password"],
                    phone=data.get("phone", ""),
                    address=data.get("address", ""),
                    audit=_audit_context(request),
                )
            )
        except AccountAlreadyExistsError as exc:
            return api_error(message=str(exc), field=exc.field, http_status=status.HTTP_409_CONFLICT)
        except AccountValidationError as exc:
            return api_error(message=str(exc), field=exc.field)

        return api_success(
            {**_user_payload(result.user), **_token_pair(result.user)},
            http_status=status.HTTP_201_CREATED,
        )


class LoginAPI(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return api_error(message="Invalid input.", details=serializer.errors)

        context = _audit_context(request)
        email = serializer.validated_data["email"]

        try:
            result = LoginUseCase.execute(
                LoginCommand(email=email, password=serializer.validated_data["password"])
            )
        except InvalidCredentialsError as exc:
            AccountAuditService.login(email=email, context=context, reason="invalid_credentials")
            return api_error(message=str(exc), http_status=status.HTTP_401_UNAUTHORIZED)

        AccountAuditService.login(email=email, user=result.user, context=context)
        return api_success({**_user_payload(result.user), **_token_pair(result.user)})


class MeAPI(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return api_success(_user_payload(request.user))
