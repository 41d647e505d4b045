from __future__ import annotations

from .types import EmailMessage


class EmailGateway:
    name: str = ""

    def send_email(self, *, message: EmailMessage, from_email: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError
