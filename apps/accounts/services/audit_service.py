from __future__ import annotations

from dataclasses import dataclass

from apps.accounts.domain.policies import normalize_email
from apps.accounts.models import AccountAuditLog


@dataclass(frozen=True)
class AuditContext:
    ip_address: str | None = None
    user_agent: str = ""


class AccountAuditService:
    """Append-only trail of registrations and login attempts."""

    @staticmethod
    def _write(*, user, action: str, context: AuditContext, metadata: dict) -> AccountAuditLog:
        return AccountAuditLog.objects.create(
            user_id=getattr(user, "id", None),
            action=action,
            ip_address=context.ip_address,
            user_agent=(context.user_agent or "")[:1000],
            metadata=metadata,
        )

    @staticmethod
    def registered(user, *, context: AuditContext) -> AccountAuditLog:
        return AccountAuditService._write(
            user=user,
            action=AccountAuditLog.ACTION_REGISTERED,
            context=context,
            metadata={"email": user.email},
        )

    @staticmethod
    def login(*, email: str, user=None, context: AuditContext, reason: str = "") -> AccountAuditLog:
        """A login attempt; ``user`` is None when it failed."""
        metadata = {"email": normalize_email(email)}
        if reason:
            metadata["reason"] = reason
        return AccountAuditService._write(
            user=user,
            action=AccountAuditLog.ACTION_LOGIN_SUCCEEDED if user is not None else AccountAuditLog.ACTION_LOGIN_FAILED,
            context=context,
            metadata=metadata,
        )
