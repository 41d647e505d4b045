from __future__ import annotations

from django.core.mail import EmailMultiAlternatives

from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.domain.ports import EmailGateway
from apps.notifications.domain.types import EmailMessage


class DjangoMailGateway(EmailGateway):
    """Delivers through whatever EMAIL_BACKEND the project is configured with."""

    name = "django"

    def send_email(self, *, message: EmailMessage, from_email: str) -> None:
        email = EmailMultiAlternatives(
            subject=message.subject,
            body=message.text or "",
            from_email=from_email,
            to=[message.to_email],
            headers=dict(message.headers or {}),
        )
        if message.html:
            email.attach_alternative(message.html, "text/html")
        try:
            email.send(fail_silently=False)
        except Exception as exc:  # pragma: no cover - transport errors vary
            raise EmailGatewayError(str(exc)) from exc
