from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction

from apps.accounts.domain.errors import AccountAlreadyExistsError, AccountValidationError
from apps.accounts.domain.policies import validate_email, validate_full_name, validate_optional_phone
from apps.accounts.domain.roles import AccountRole
from apps.accounts.models import AccountProfile
from apps.accounts.services.audit_service import AccountAuditService, AuditContext


@dataclass(frozen=True)
class RegisterUserCommand:
    full_name: str
    email: str
    password: str
    phone: str = ""
    address: str = ""
    audit: AuditContext = AuditContext()


@dataclass(frozen=True)
class RegisterUserResult:
    user: object


class RegisterUserUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: RegisterUserCommand) -> RegisterUserResult:
        full_name = validate_full_name(cmd.full_name)
        email = validate_email(cmd.email)
        phone = validate_optional_phone(cmd.phone)

        UserModel = get_user_model()
        if UserModel.objects.filter(email__iexact=email).exists():
            raise AccountAlreadyExistsError("An account with this email already exists.", field="email")

        try:
            validate_password(cmd.password)
        except ValidationError as exc:
            raise AccountValidationError("; ".join(exc.messages), field="password") from exc

        user = UserModel.objects.create_user(
            username=email,
            email=email,
            password=cmd.password,
        )
        AccountProfile.objects.create(
            user=user,
            full_name=full_name,
            phone=phone,
            address=(cmd.address or "").strip(),
            role=AccountRole.USER.value,
        )

        AccountAuditService.registered(user, context=cmd.audit)
        return RegisterUserResult(user=user)
