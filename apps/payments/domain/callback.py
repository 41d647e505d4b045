from __future__ import annotations

from dataclasses import dataclass, field

from .errors import InvalidCallbackPayload

RECEIPT_KEYS = ("MpesaReceiptNumber", "MpesaReceipt")


def _result_code(raw) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw.strip())
    return None


def _metadata(raw: dict) -> dict:
    container = raw.get("CallbackMetadata")
    items = container.get("Item") or [] if isinstance(container, dict) else []
    out = {}
    for item in items:
        if isinstance(item, dict) and item.get("Name"):
            out[item["Name"]] = item.get("Value")
    return out


@dataclass(frozen=True)
class StkCallback:
    result_code: int
    result_desc: str
    checkout_request_id: str | None
    merchant_request_id: str | None
    receipt: str | None
    metadata: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0

    @classmethod
    def from_query_response(cls, data) -> "StkCallback | None":
        """STK push query answers carry the same ResultCode semantics as callbacks.

        Returns None while the provider has no definitive result yet.
        """
        if not isinstance(data, dict):
            return None
        code = _result_code(data.get("ResultCode"))
        if code is None:
            return None
        return cls(
            result_code=code,
            result_desc=str(data.get("ResultDesc") or ""),
            checkout_request_id=data.get("CheckoutRequestID") or data.get("checkoutRequestID"),
            merchant_request_id=data.get("MerchantRequestID"),
            receipt=None,
            raw=data,
        )


def parse_stk_callback(body) -> StkCallback:
    if not isinstance(body, dict):
        raise InvalidCallbackPayload("Invalid callback payload")
    envelope = body.get("Body")
    stk = envelope.get("stkCallback") if isinstance(envelope, dict) else None
    if not isinstance(stk, dict):
        raise InvalidCallbackPayload("Invalid callback payload")

    code = _result_code(stk.get("ResultCode"))
    if code is None:
        raise InvalidCallbackPayload("Invalid callback payload", field="ResultCode")

    metadata = _metadata(stk)
    receipt = next((metadata[k] for k in RECEIPT_KEYS if metadata.get(k)), None)
    checkout_id = stk.get("CheckoutRequestID") or stk.get("checkoutRequestID") or metadata.get("CheckoutRequestID")
    return StkCallback(
        result_code=code,
        result_desc=str(stk.get("ResultDesc") or ""),
        checkout_request_id=str(checkout_id) if checkout_id else None,
        merchant_request_id=stk.get("MerchantRequestID"),
        receipt=str(receipt) if receipt else None,
        metadata=metadata,
        raw=stk,
    )
