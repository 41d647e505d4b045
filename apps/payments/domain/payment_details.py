from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from .errors import PaymentDetailsError


@dataclass(frozen=True)
class PaymentDetails:
    """Typed view over ``Order.payment_details``.

    Every stage of the payment flow writes a subset of these fields. Updates
    go through ``merge`` so a later stage never wipes what an earlier one
    recorded; setting a field to ``None`` removes it.
    """

    method: str | None = None
    initiated_at: str | None = None
    amount: int | None = None
    checkout_request_id: str | None = None
    response_code: str | None = None
    raw_response: Any = None
    transaction_id: str | None = None
    payload: Any = None
    paid_at: str | None = None
    failed_at: str | None = None
    failure_reason: str | None = None
    error: Any = None
    last_queried_at: str | None = None
    query_error: Any = None
    status_query_result: Any = None

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def from_dict(cls, raw: dict | None) -> "PaymentDetails":
        raw = raw or {}
        known = cls.field_names()
        return cls(**{k: v for k, v in raw.items() if k in known})

    def merge(self, **changes) -> "PaymentDetails":
        unknown = set(changes) - self.field_names()
        if unknown:
            raise PaymentDetailsError(f"Unknown payment detail fields: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}
