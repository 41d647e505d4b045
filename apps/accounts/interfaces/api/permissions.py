from __future__ import annotations

from rest_framework.permissions import BasePermission

from apps.accounts.application.services.identity_service import AccountIdentityService


class IsActiveAccount(BasePermission):
    message = "Account is not active."

    def has_permission(self, request, view) -> bool:
        return AccountIdentityService.is_active(request.user)


class IsSeller(BasePermission):
    """Sellers, and admins acting on their behalf."""

    message = "Seller account required."

    def has_permission(self, request, view) -> bool:
        return AccountIdentityService.is_seller(request.user) or AccountIdentityService.is_admin(request.user)


class IsPlatformAdmin(BasePermission):
    message = "Admin account required."

    def has_permission(self, request, view) -> bool:
        return AccountIdentityService.is_admin(request.user)
