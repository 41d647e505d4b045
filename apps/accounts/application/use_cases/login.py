from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import authenticate

from apps.accounts.application.services.identity_service import AccountIdentityService
from apps.accounts.domain.errors import AccountSuspendedError, InvalidCredentialsError
from apps.accounts.domain.policies import normalize_email


@dataclass(frozen=True)
class LoginCommand:
    email: str
    password: str


@dataclass(frozen=True)
class LoginResult:
    user: object
    role: str


class LoginUseCase:
    @staticmethod
    def execute(cmd: LoginCommand) -> LoginResult:
        email = normalize_email(cmd.email)
        if not email or not cmd.password:
            raise InvalidCredentialsError("Invalid credentials.")

        user = authenticate(username=email, password=cmd.password)
        if user is None:
            raise InvalidCredentialsError("Invalid credentials.")
        if not AccountIdentityService.is_active(user):
            raise AccountSuspendedError("This account is suspended.")

        return LoginResult(user=user, role=AccountIdentityService.role_of(user).value)
