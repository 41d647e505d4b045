from __future__ import annotations

from apps.accounts.domain.roles import AccountRole, AccountStatus
from apps.accounts.models import AccountProfile


class AccountIdentityService:
    """Role lookups shared by permissions and use cases in other apps."""

    @staticmethod
    def profile_for(user) -> AccountProfile | None:
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        try:
            return user.account_profile
        except AccountProfile.DoesNotExist:
            return None

    @staticmethod
    def role_of(user) -> AccountRole | None:
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return AccountRole.ADMIN
        profile = AccountIdentityService.profile_for(user)
        if profile is None:
            return AccountRole.USER
        return AccountRole(profile.role)

    @staticmethod
    def is_admin(user) -> bool:
        return AccountIdentityService.role_of(user) == AccountRole.ADMIN

    @staticmethod
    def is_seller(user) -> bool:
        return AccountIdentityService.role_of(user) == AccountRole.SELLER

    @staticmethod
    def is_active(user) -> bool:
        if user is None or not getattr(user, "is_active", False):
            return False
        profile = AccountIdentityService.profile_for(user)
        return profile is None or profile.status == AccountStatus.ACTIVE
