from __future__ import annotations

from django.conf import settings
from django.db import models

from apps.accounts.domain.roles import AccountRole, AccountStatus


class AccountProfile(models.Model):
    ROLE_CHOICES = [(role.value, role.name.title()) for role in AccountRole]
    STATUS_CHOICES = [(s.value, s.name.title()) for s in AccountStatus]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="account_profile",
    )
    full_name = models.CharField(max_length=200, blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.TextField(blank=True, default="")
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=AccountRole.USER.value)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=AccountStatus.ACTIVE.value)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["role", "status"], name="accounts_ac_role_7c1f0e_idx"),
        ]

    def __str__(self) -> str:
        return f"AccountProfile(user_id={self.user_id}, role={self.role})"


class AccountAuditLog(models.Model):
    ACTION_REGISTERED = "registered"
    ACTION_LOGIN_SUCCEEDED = "login_succeeded"
    ACTION_LOGIN_FAILED = "login_failed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="account_audit_logs",
    )
    action = models.CharField(max_length=64)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["action", "created_at"], name="accounts_ac_action_3d2b9a_idx"),
            models.Index(fields=["user", "created_at"], name="accounts_ac_user_id_5e8c41_idx"),
        ]

    def __str__(self) -> str:
        return f"AccountAuditLog(action={self.action}, user_id={self.user_id})"
