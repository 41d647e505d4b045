from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class OrderEvent(StrEnum):
    PLACED = "placed"
    STATUS_CHANGED = "status_changed"
    CANCELLED = "cancelled"
    PAYMENT_RECEIVED = "payment_received"


@dataclass(frozen=True)
class EmailMessage:
    to_email: str
    subject: str
    text: str
    html: str = ""
    headers: dict = field(default_factory=dict)
