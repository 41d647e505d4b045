from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class StkPushAck:
    checkout_request_id: str
    response_code: str | None
    raw: dict


@dataclass(frozen=True)
class StatusQueryAck:
    raw: dict
    placeholder_credential: bool = False


class MpesaGatewayPort(Protocol):
    code: str
    name: str

    def stk_push(self, *, order_id: int, phone: str, amount: int) -> StkPushAck:
        ...

    def stk_query(self, *, checkout_request_id: str) -> dict:
        ...

    def transaction_status(self, *, order_id: int, transaction_id: str) -> StatusQueryAck:
        ...
