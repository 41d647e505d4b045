from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.domain.ports import EmailGateway
from apps.notifications.infrastructure.gateways.django_mail import DjangoMailGateway


@dataclass(frozen=True)
class ResolvedEmailProvider:
    gateway: EmailGateway
    provider_name: str
    default_from_email: str


class EmailGatewayRouter:
    @staticmethod
    def resolve() -> ResolvedEmailProvider:
        provider_name = (getattr(settings, "NOTIFICATIONS_EMAIL_PROVIDER", "django") or "").strip().lower()
        default_from = getattr(settings, "DEFAULT_FROM_EMAIL", "") or ""

        if provider_name == "django":
            return ResolvedEmailProvider(
                gateway=DjangoMailGateway(),
                provider_name="django",
                default_from_email=default_from,
            )

        raise EmailGatewayError(f"Unknown email provider: {provider_name}")
