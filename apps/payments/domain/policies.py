from __future__ import annotations

import base64
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from zoneinfo import ZoneInfo

from .errors import PaymentValidationError

MSISDN_RE = re.compile(r"^(\+254|254|0)([17]\d{8}|[2-9]\d{8})$")
NAIROBI = ZoneInfo("Africa/Nairobi")


def validate_amount(raw) -> int:
    """Whole shillings, rounded half up. Anything below 1 is rejected."""
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, TypeError, ValueError):
        raise PaymentValidationError("Amount must be a number.", field="amount") from None
    if not amount.is_finite() or amount < 1:
        raise PaymentValidationError("Amount cannot be less than 1.", field="amount")
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_msisdn(raw: str) -> str:
    """0712345678, 254712345678 and +254712345678 all become 254712345678."""
    value = re.sub(r"\s+", "", raw or "")
    match = MSISDN_RE.match(value)
    if not match:
        raise PaymentValidationError("Invalid phone number format.", field="phone_number")
    return f"254{match.group(2)}"


def stk_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(tz=NAIROBI)
    if now.tzinfo is not None:
        now = now.astimezone(NAIROBI)
    return now.strftime("%Y%m%d%H%M%S")


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()
