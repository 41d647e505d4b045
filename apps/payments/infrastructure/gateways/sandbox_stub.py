from __future__ import annotations

from uuid import uuid4

from apps.payments.application.config import MpesaConfig
from apps.payments.domain.ports import StatusQueryAck, StkPushAck


class SandboxStubGateway:
    """Offline stand-in for local development; never touches the network."""

    code = "sandbox_stub"
    name = "Sandbox Stub"

    def __init__(self, config: MpesaConfig, session=None):
        self.config = config

    def stk_push(self, *, order_id: int, phone: str, amount: int) -> StkPushAck:
        reference = f"ws_CO_SANDBOX_{uuid4().hex[:12]}"
        raw = {
            "MerchantRequestID": f"SANDBOX-{order_id}",
            "CheckoutRequestID": reference,
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        }
        return StkPushAck(checkout_request_id=reference, response_code="0", raw=raw)

    def stk_query(self, *, checkout_request_id: str) -> dict:
        return {
            "ResponseCode": "0",
            "CheckoutRequestID": checkout_request_id,
            "ResultCode": "0",
            "ResultDesc": "The service request is processed successfully.",
        }

    def transaction_status(self, *, order_id: int, transaction_id: str) -> StatusQueryAck:
        raw = {
            "OriginatorConversationID": f"SANDBOX-{uuid4().hex[:8]}",
            "ConversationID": f"AG_SANDBOX_{order_id}",
            "ResponseCode": "0",
            "ResponseDescription": "Accept the service request successfully.",
        }
        return StatusQueryAck(raw=raw, placeholder_credential=not self.config.initiator_password)
