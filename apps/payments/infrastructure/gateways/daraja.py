from __future__ import annotations

import logging

import requests

from apps.payments.application.config import PLACEHOLDER_SECURITY_CREDENTIAL, MpesaConfig
from apps.payments.domain.errors import (
    GatewayHTTPError,
    GatewayRequestError,
    GatewayTimeoutError,
)
from apps.payments.domain.policies import stk_password, stk_timestamp
from apps.payments.domain.ports import StatusQueryAck, StkPushAck

logger = logging.getLogger("soko.payments")

OAUTH_PATH = "oauth/v1/generate?grant_type=client_credentials"
STK_PUSH_PATH = "mpesa/stkpush/v1/processrequest"
STK_QUERY_PATH = "mpesa/stkpushquery/v1/query"
TRANSACTION_STATUS_PATH = "mpesa/transactionstatus/v1/query"
ENCRYPT_PATH = "cert/v1/encrypt"


def _body(response):
    try:
        return response.json()
    except ValueError:
        return response.text or "Unknown error"


class DarajaGateway:
    """Safaricom Daraja client.

    Access tokens are fetched per operation and never cached across requests.
    """

    code = "daraja"
    name = "M-Pesa Daraja"

    def __init__(self, config: MpesaConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}/{path}"

    def _request(self, method: str, path: str, *, timeout: int, **kwargs) -> dict:
        try:
            response = self.session.request(method, self._url(path), timeout=timeout, **kwargs)
        except requests.Timeout as exc:
            raise GatewayTimeoutError("Request timeout. Please try again.") from exc
        except requests.RequestException as exc:
            raise GatewayRequestError("Failed to reach M-Pesa.", details=str(exc)) from exc

        if response.status_code >= 400:
            raise GatewayHTTPError(
                "M-Pesa API Error",
                details=_body(response),
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayRequestError("Malformed response from M-Pesa.", details=response.text) from exc
        if not isinstance(data, dict):
            raise GatewayRequestError("Malformed response from M-Pesa.", details=data)
        return data

    def access_token(self) -> str:
        if not self.config.consumer_key or not self.config.consumer_secret:
            raise GatewayRequestError("M-Pesa consumer credentials are not configured.")
        data = self._request(
            "GET",
            OAUTH_PATH,
            timeout=self.config.http_timeout_seconds,
            auth=(self.config.consumer_key, self.config.consumer_secret),
        )
        token = data.get("access_token")
        if not token:
            raise GatewayRequestError("Malformed response from M-Pesa.", details=data)
        return token

    def _authorized_post(self, path: str, payload: dict, *, timeout: int, token: str | None = None) -> dict:
        token = token or self.access_token()
        return self._request(
            "POST",
            path,
            timeout=timeout,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )

    def stk_push(self, *, order_id: int, phone: str, amount: int) -> StkPushAck:
        timestamp = stk_timestamp()
        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": stk_password(self.config.shortcode, self.config.passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": int(amount),
            "PartyA": phone,
            "PartyB": self.config.shortcode,
            "PhoneNumber": phone,
            "CallBackURL": self.config.stk_callback_url(order_id),
            "AccountReference": self.config.account_reference,
            "TransactionDesc": f"Payment for Order {order_id}",
        }
        data = self._authorized_post(STK_PUSH_PATH, payload, timeout=self.config.stk_timeout_seconds)

        checkout_id = data.get("CheckoutRequestID") or data.get("checkoutRequestID")
        if not checkout_id:
            raise GatewayRequestError("Malformed response from M-Pesa.", details=data)
        response_code = data.get("ResponseCode", data.get("responseCode"))
        return StkPushAck(
            checkout_request_id=str(checkout_id),
            response_code=str(response_code) if response_code is not None else None,
            raw=data,
        )

    def stk_query(self, *, checkout_request_id: str) -> dict:
        timestamp = stk_timestamp()
        payload = {
            "BusinessShortCode": self.config.shortcode,
            "Password": stk_password(self.config.shortcode, self.config.passkey, timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        return self._authorized_post(STK_QUERY_PATH, payload, timeout=self.config.http_timeout_seconds)

    def security_credential(self, *, token: str) -> tuple[str, bool]:
        """Encrypted initiator password, or the placeholder when none is configured."""
        if not self.config.initiator_password:
            logger.warning("MPESA_INITIATOR_PASSWORD not set; using placeholder security credential")
            return PLACEHOLDER_SECURITY_CREDENTIAL, True
        data = self._authorized_post(
            ENCRYPT_PATH,
            {"initiatorIdentifier": self.config.initiator_password, "securityCredential": "Safaricom"},
            timeout=self.config.http_timeout_seconds,
            token=token,
        )
        credential = data.get("encryptedSecurityCredential")
        if not credential:
            raise GatewayRequestError("Malformed response from M-Pesa.", details=data)
        return credential, False

    def transaction_status(self, *, order_id: int, transaction_id: str) -> StatusQueryAck:
        token = self.access_token()
        credential, placeholder = self.security_credential(token=token)
        payload = {
            "Initiator": self.config.initiator_name,
            "SecurityCredential": credential,
            "CommandID": "TransactionStatusQuery",
            "TransactionID": transaction_id,
            "PartyA": self.config.shortcode,
            "IdentifierType": "1",
            "ResultURL": self.config.result_url(order_id),
            "QueueTimeOutURL": self.config.queue_timeout_url(order_id),
            "Remarks": f"Check status for order {order_id}",
            "Occasion": "VerifyPayment",
        }
        data = self._authorized_post(
            TRANSACTION_STATUS_PATH, payload, timeout=self.config.http_timeout_seconds, token=token
        )
        return StatusQueryAck(raw=data, placeholder_credential=placeholder)
