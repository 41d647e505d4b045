from __future__ import annotations

import base64
import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from apps.accounts.domain.roles import AccountRole
from apps.accounts.models import AccountProfile
from apps.catalog.models import Product
from apps.orders.application.use_cases.place_order import PlaceOrderCommand, PlaceOrderUseCase
from apps.orders.domain.status import OrderStatus, PaymentStatus
from apps.orders.models import Order
from apps.payments.application.config import PLACEHOLDER_SECURITY_CREDENTIAL, MpesaConfig
from apps.payments.domain.callback import StkCallback, parse_stk_callback
from apps.payments.domain.errors import InvalidCallbackPayload, PaymentDetailsError, PaymentValidationError
from apps.payments.domain.payment_details import PaymentDetails
from apps.payments.domain.policies import normalize_msisdn, stk_password, validate_amount
from apps.payments.domain.reconciliation import ALREADY_PROCESSED, PaymentState, reconcile

MPESA_TEST_SETTINGS = dict(
    MPESA_ENV="sandbox",
    MPESA_GATEWAY="daraja",
    MPESA_CONSUMER_KEY="consumer-key",
    MPESA_CONSUMER_SECRET="consumer-secret",
    MPESA_SHORTCODE="174379",
    MPESA_PASSKEY="passkey",
    MPESA_CALLBACK_URL="https://shop.example.test/api/mpesa/callback",
    MPESA_CALLBACK_SECRET="s3cret",
    MPESA_INITIATOR_NAME="testapi",
    MPESA_INITIATOR_PASSWORD="",
)

SESSION_PATH = "apps.payments.infrastructure.gateways.daraja.requests.Session"


def _response(status_code: int, body) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = json.dumps(body)
    return response


def _token() -> MagicMock:
    return _response(200, {"access_token": "tok-123", "expires_in": "3599"})


def _push_ack(checkout_id: str = "ws_CO_191220191020363925") -> MagicMock:
    return _response(
        200,
        {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": checkout_id,
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        },
    )


def _callback_body(result_code=0, *, checkout_id="ws_CO_191220191020363925", receipt="NLJ7RT61SV", desc=None):
    stk = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": desc if desc is not None else "The service request is processed successfully.",
    }
    if result_code == 0:
        stk["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": 500},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "TransactionDate", "Value": 20191219102115},
                {"Name": "PhoneNumber", "Value": 254712345678},
            ]
        }
    return {"Body": {"stkCallback": stk}}


def _make_user(email: str, role: str = AccountRole.USER.value):
    user = get_user_model().objects.create_user(username=email, email=email, password="pass12345")
    AccountProfile.objects.create(user=user, full_name=email.split("@")[0].title(), role=role)
    return user


@override_settings(**MPESA_TEST_SETTINGS)
class MpesaTestCase(TestCase):
    def setUp(self):
        super().setUp()
        self.buyer = _make_user("buyer@example.com")
        self.seller = _make_user("seller@example.com", AccountRole.SELLER.value)
        self.product = Product.objects.create(
            seller=self.seller, name="Blender", category="Appliances", price=Decimal("250.00"), quantity=10
        )
        self.client = APIClient()
        self.client.force_authenticate(self.buyer)

    def place_order(self, quantity: int = 2) -> Order:
        return PlaceOrderUseCase.execute(
            PlaceOrderCommand(
                user=self.buyer,
                address="Moi Avenue, Nairobi",
                phone_number="0712345678",
                items=((self.product.id, quantity),),
            )
        )

    def initiate(self, order: Order, *, amount="500", phone="0712345678"):
        return self.client.post(
            "/api/mpesa/stk-push/",
            {"order_id": order.id, "phone_number": phone, "amount": amount},
            format="json",
        )

    def callback(self, order_ref, body, *, secret="s3cret"):
        anonymous = APIClient()
        url = f"/api/mpesa/callback/{order_ref}/"
        if secret is not None:
            url = f"{url}?secret={secret}"
        return anonymous.post(url, body, format="json")

    def mark_initiated(self, order: Order, checkout_id: str = "ws_CO_191220191020363925") -> None:
        Order.objects.filter(id=order.id).update(
            payment_status=PaymentStatus.INITIATED.value,
            payment_details={"method": "M-Pesa", "checkout_request_id": checkout_id},
        )


class StkPushScenarioTests(MpesaTestCase):
    def test_place_initiate_callback_and_duplicate(self):
        order = self.place_order(quantity=2)
        self.assertEqual(order.total_price, Decimal("500.00"))
        self.assertEqual(order.payment_method, "COD")
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)

        session = MagicMock()
        session.request.side_effect = [_token(), _push_ack()]
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)

        self.assertEqual(response.status_code, 200, response.content)
        data = response.json()["data"]
        self.assertEqual(data["checkout_request_id"], "ws_CO_191220191020363925")
        self.assertEqual(data["response"]["ResponseCode"], "0")
        self.assertIn("message", data)

        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.INITIATED)
        self.assertEqual(order.payment_method, "M-Pesa")
        self.assertEqual(order.payment_details["checkout_request_id"], "ws_CO_191220191020363925")
        self.assertEqual(order.payment_details["amount"], 500)
        self.assertEqual(order.payment_details["response_code"], "0")

        with self.captureOnCommitCallbacks(execute=True):
            first = self.callback(order.id, _callback_body(0))
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json(), {"ResultCode": 0, "ResultDesc": "Accepted"})

        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(order.payment_details["transaction_id"], "NLJ7RT61SV")
        self.assertIn("paid_at", order.payment_details)
        self.assertEqual(order.payment_details["checkout_request_id"], "ws_CO_191220191020363925")
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("NLJ7RT61SV", mail.outbox[0].body)

        paid_details = dict(order.payment_details)
        second = self.callback(order.id, _callback_body(0, receipt="OTHER00000"))
        self.assertEqual(second.json(), {"ResultCode": 0, "ResultDesc": "Already processed"})
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertEqual(order.payment_details, paid_details)

    def test_outbound_requests_are_built_from_config(self):
        order = self.place_order()
        session = MagicMock()
        session.request.side_effect = [_token(), _push_ack()]
        with patch(SESSION_PATH, return_value=session):
            self.initiate(order, amount="499.6", phone="+254712345678")

        token_call, push_call = session.request.call_args_list
        self.assertEqual(token_call.args[0], "GET")
        self.assertEqual(
            token_call.args[1],
            "https://sandbox.safaricom.co.ke/oauth/v1/generate?grant_type=client_credentials",
        )
        self.assertEqual(token_call.kwargs["auth"], ("consumer-key", "consumer-secret"))
        self.assertEqual(token_call.kwargs["timeout"], 15)

        self.assertEqual(push_call.args[1], "https://sandbox.safaricom.co.ke/mpesa/stkpush/v1/processrequest")
        self.assertEqual(push_call.kwargs["timeout"], 30)
        self.assertEqual(push_call.kwargs["headers"]["Authorization"], "Bearer tok-123")
        payload = push_call.kwargs["json"]
        self.assertEqual(payload["Amount"], 500)
        self.assertEqual(payload["PartyA"], "254712345678")
        self.assertEqual(payload["PhoneNumber"], "254712345678")
        self.assertEqual(payload["PartyB"], "174379")
        self.assertEqual(payload["TransactionType"], "CustomerPayBillOnline")
        self.assertEqual(payload["TransactionDesc"], f"Payment for Order {order.id}")
        self.assertEqual(
            payload["CallBackURL"],
            f"https://shop.example.test/api/mpesa/callback/{order.id}/?secret=s3cret",
        )
        self.assertRegex(payload["Timestamp"], r"^\d{14}$")
        decoded = base64.b64decode(payload["Password"]).decode()
        self.assertEqual(decoded, f"174379passkey{payload['Timestamp']}")

    def test_lowercase_ack_keys_are_accepted(self):
        order = self.place_order()
        session = MagicMock()
        session.request.side_effect = [
            _token(),
            _response(200, {"checkoutRequestID": "ws_CO_lower", "responseCode": 0}),
        ]
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)
        self.assertEqual(response.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.payment_details["checkout_request_id"], "ws_CO_lower")
        self.assertEqual(order.payment_details["response_code"], "0")

    def test_failed_push_can_be_reinitiated(self):
        order = self.place_order()
        Order.objects.filter(id=order.id).update(
            payment_status=PaymentStatus.FAILED.value,
            payment_details={"method": "M-Pesa", "error": "old failure"},
        )
        session = MagicMock()
        session.request.side_effect = [_token(), _push_ack("ws_CO_retry")]
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)
        self.assertEqual(response.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.INITIATED)
        self.assertNotIn("error", order.payment_details)

    @override_settings(MPESA_GATEWAY="sandbox_stub")
    def test_sandbox_stub_gateway_never_touches_network(self):
        order = self.place_order()
        with patch(SESSION_PATH) as session_factory:
            response = self.initiate(order)
        self.assertEqual(response.status_code, 200)
        session_factory.assert_not_called()
        self.assertTrue(response.json()["data"]["checkout_request_id"].startswith("ws_CO_SANDBOX_"))


class StkPushValidationTests(MpesaTestCase):
    def test_zero_amount_rejected_before_any_outbound_call(self):
        order = self.place_order()
        session = MagicMock()
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order, amount="0")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "amount")
        session.request.assert_not_called()
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)

    def test_invalid_phone_rejected_before_any_outbound_call(self):
        order = self.place_order()
        session = MagicMock()
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order, phone="0612345")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "phone_number")
        session.request.assert_not_called()

    def test_missing_fields(self):
        response = self.client.post("/api/mpesa/stk-push/", {"amount": "10"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_unknown_order_is_404(self):
        response = self.client.post(
            "/api/mpesa/stk-push/",
            {"order_id": 424242, "phone_number": "0712345678", "amount": "10"},
            format="json",
        )
        self.assertEqual(response.status_code, 404)

    def test_foreign_order_is_403(self):
        order = self.place_order()
        self.client.force_authenticate(_make_user("stranger@example.com"))
        response = self.initiate(order)
        self.assertEqual(response.status_code, 403)

    def test_paid_and_cancelled_orders_conflict(self):
        paid = self.place_order()
        Order.objects.filter(id=paid.id).update(payment_status=PaymentStatus.PAID.value)
        cancelled = self.place_order()
        Order.objects.filter(id=cancelled.id).update(status=OrderStatus.CANCELLED)

        session = MagicMock()
        with patch(SESSION_PATH, return_value=session):
            self.assertEqual(self.initiate(paid).status_code, 409)
            self.assertEqual(self.initiate(cancelled).status_code, 409)
        session.request.assert_not_called()


class StkPushFailureTests(MpesaTestCase):
    def test_upstream_error_is_forwarded_and_recorded(self):
        order = self.place_order()
        upstream = {"requestId": "abc", "errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid Amount"}
        session = MagicMock()
        session.request.side_effect = [_token(), _response(400, upstream)]
        with patch(SESSION_PATH, return_value=session):
            with self.assertLogs("soko.payments", level="WARNING"):
                response = self.initiate(order)

        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["message"], "M-Pesa API Error")
        self.assertEqual(error["details"], upstream)

        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.FAILED)
        self.assertEqual(order.payment_details["error"], upstream)
        self.assertIn("failed_at", order.payment_details)

    def test_token_failure_is_forwarded(self):
        order = self.place_order()
        session = MagicMock()
        session.request.side_effect = [_response(401, {"errorMessage": "Invalid credentials"})]
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)
        self.assertEqual(response.status_code, 401)

    def test_timeout_maps_to_408(self):
        order = self.place_order()
        session = MagicMock()
        session.request.side_effect = [_token(), requests.Timeout("read timed out")]
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)
        self.assertEqual(response.status_code, 408)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.FAILED)

    def test_connection_error_maps_to_500(self):
        order = self.place_order()
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("dns failure")
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)
        self.assertEqual(response.status_code, 500)

    def test_malformed_ack_maps_to_500(self):
        order = self.place_order()
        session = MagicMock()
        session.request.side_effect = [_token(), _response(200, {"ResponseCode": "0"})]
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)
        self.assertEqual(response.status_code, 500)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.FAILED)

    @override_settings(MPESA_CONSUMER_KEY="")
    def test_missing_credentials_maps_to_500(self):
        order = self.place_order()
        session = MagicMock()
        with patch(SESSION_PATH, return_value=session):
            response = self.initiate(order)
        self.assertEqual(response.status_code, 500)
        session.request.assert_not_called()


class StkCallbackTests(MpesaTestCase):
    def test_wrong_secret_is_403_without_mutation(self):
        order = self.place_order()
        self.mark_initiated(order)
        response = self.callback(order.id, _callback_body(0), secret="guess")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.callback(order.id, _callback_body(0), secret=None).status_code, 403)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.INITIATED)

    @override_settings(MPESA_CALLBACK_SECRET="")
    def test_unconfigured_secret_rejects_everything(self):
        order = self.place_order()
        response = self.callback(order.id, _callback_body(0), secret="")
        self.assertEqual(response.status_code, 403)

    def test_missing_stk_callback_is_400(self):
        order = self.place_order()
        self.mark_initiated(order)
        response = self.callback(order.id, {"Body": {}})
        self.assertEqual(response.status_code, 400)
        response = self.callback(order.id, {"Body": {"stkCallback": {"ResultCode": "abc"}}})
        self.assertEqual(response.status_code, 400)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.INITIATED)

    def test_unmatched_callback_is_acknowledged(self):
        with self.assertLogs("soko.payments", level="WARNING") as captured:
            response = self.callback(999999, _callback_body(0, checkout_id="ws_CO_nobody", receipt="ZZZ"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ResultCode": 0, "ResultDesc": "Accepted (no matching order found)"})
        self.assertTrue(any("no order matches" in line for line in captured.output))

    def test_falls_back_to_checkout_request_id(self):
        order = self.place_order()
        self.mark_initiated(order, "ws_CO_fallback")
        response = self.callback("unknown", _callback_body(0, checkout_id="ws_CO_fallback"))
        self.assertEqual(response.json()["ResultDesc"], "Accepted")
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)

    def test_falls_back_to_receipt_number(self):
        order = self.place_order()
        Order.objects.filter(id=order.id).update(
            payment_status=PaymentStatus.FAILED.value,
            payment_details={"method": "M-Pesa", "transaction_id": "RCPT000001"},
        )
        body = _callback_body(0, checkout_id="ws_CO_other", receipt="RCPT000001")
        response = self.callback("unknown", body)
        self.assertEqual(response.json()["ResultDesc"], "Accepted")
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)

    def test_failed_payment_records_reason(self):
        order = self.place_order()
        self.mark_initiated(order)
        response = self.callback(order.id, _callback_body(1032, desc="Request cancelled by user"))
        self.assertEqual(response.json(), {"ResultCode": 0, "ResultDesc": "Accepted"})
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.FAILED)
        self.assertEqual(order.payment_details["failure_reason"], "Request cancelled by user")
        self.assertIn("failed_at", order.payment_details)
        self.assertEqual(order.payment_details["checkout_request_id"], "ws_CO_191220191020363925")

    def test_late_failure_never_overwrites_paid(self):
        order = self.place_order()
        self.mark_initiated(order)
        self.callback(order.id, _callback_body(0))
        response = self.callback(order.id, _callback_body(1, desc="Insufficient balance"))
        self.assertEqual(response.json()["ResultDesc"], "Already processed")
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertNotIn("failure_reason", order.payment_details)

    def test_persistence_failure_is_logged_and_acknowledged(self):
        order = self.place_order()
        self.mark_initiated(order)
        with patch(
            "apps.payments.application.use_cases.handle_stk_callback.save_payment",
            side_effect=DatabaseError("database is locked"),
        ):
            with self.assertLogs("soko.payments", level="ERROR") as captured:
                response = self.callback(order.id, _callback_body(0))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ResultCode": 1, "ResultDesc": "Failed to record callback"})
        self.assertTrue(any("Traceback" in line for line in captured.output))
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.INITIATED)


class QueryPaymentStatusTests(MpesaTestCase):
    def query(self, order):
        return self.client.post(f"/api/mpesa/transaction-status/{order.id}/")

    def test_no_reference_is_400(self):
        order = self.place_order()
        session = MagicMock()
        with patch(SESSION_PATH, return_value=session):
            self.assertEqual(self.query(order).status_code, 400)
        session.request.assert_not_called()

    def test_receipt_uses_transaction_status_with_placeholder_credential(self):
        order = self.place_order()
        Order.objects.filter(id=order.id).update(
            payment_status=PaymentStatus.PAID.value,
            payment_details={"method": "M-Pesa", "transaction_id": "NLJ7RT61SV"},
        )
        session = MagicMock()
        session.request.side_effect = [
            _token(),
            _response(200, {"ConversationID": "AG_1", "ResponseCode": "0"}),
        ]
        with patch(SESSION_PATH, return_value=session):
            with self.assertLogs("soko.payments", level="WARNING"):
                response = self.query(order)

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["mode"], "transaction_status")
        self.assertTrue(data["placeholder_credential"])

        _, status_call = session.request.call_args_list
        self.assertTrue(status_call.args[1].endswith("/mpesa/transactionstatus/v1/query"))
        payload = status_call.kwargs["json"]
        self.assertEqual(payload["SecurityCredential"], PLACEHOLDER_SECURITY_CREDENTIAL)
        self.assertEqual(payload["CommandID"], "TransactionStatusQuery")
        self.assertEqual(payload["TransactionID"], "NLJ7RT61SV")
        self.assertEqual(payload["Initiator"], "testapi")
        self.assertEqual(payload["Occasion"], "VerifyPayment")
        self.assertEqual(
            payload["ResultURL"],
            f"https://shop.example.test/api/mpesa/callback/transaction/{order.id}/?secret=s3cret",
        )
        self.assertEqual(
            payload["QueueTimeOutURL"],
            f"https://shop.example.test/api/mpesa/callback/timeout/{order.id}/?secret=s3cret",
        )

        order.refresh_from_db()
        self.assertIn("last_queried_at", order.payment_details)
        self.assertEqual(order.payment_status, PaymentStatus.PAID)

    @override_settings(MPESA_INITIATOR_PASSWORD="initiator-pass")
    def test_receipt_query_encrypts_initiator_password(self):
        order = self.place_order()
        Order.objects.filter(id=order.id).update(payment_details={"transaction_id": "NLJ7RT61SV"})
        session = MagicMock()
        session.request.side_effect = [
            _token(),
            _response(200, {"encryptedSecurityCredential": "ENCRYPTED=="}),
            _response(200, {"ResponseCode": "0"}),
        ]
        with patch(SESSION_PATH, return_value=session):
            response = self.query(order)
        self.assertFalse(response.json()["data"]["placeholder_credential"])
        _, encrypt_call, status_call = session.request.call_args_list
        self.assertTrue(encrypt_call.args[1].endswith("/cert/v1/encrypt"))
        self.assertEqual(
            encrypt_call.kwargs["json"],
            {"initiatorIdentifier": "initiator-pass", "securityCredential": "Safaricom"},
        )
        self.assertEqual(status_call.kwargs["json"]["SecurityCredential"], "ENCRYPTED==")

    def test_checkout_query_reconciles_definitive_success(self):
        order = self.place_order()
        self.mark_initiated(order, "ws_CO_query")
        session = MagicMock()
        session.request.side_effect = [
            _token(),
            _response(
                200,
                {
                    "ResponseCode": "0",
                    "CheckoutRequestID": "ws_CO_query",
                    "ResultCode": "0",
                    "ResultDesc": "The service request is processed successfully.",
                },
            ),
        ]
        with patch(SESSION_PATH, return_value=session):
            response = self.query(order)
        self.assertEqual(response.json()["data"]["mode"], "stk_query")
        _, query_call = session.request.call_args_list
        self.assertEqual(query_call.kwargs["json"]["CheckoutRequestID"], "ws_CO_query")

        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertIn("paid_at", order.payment_details)

    def test_checkout_query_reconciles_definitive_failure(self):
        order = self.place_order()
        self.mark_initiated(order, "ws_CO_query")
        session = MagicMock()
        session.request.side_effect = [
            _token(),
            _response(200, {"ResultCode": "1037", "ResultDesc": "DS timeout user cannot be reached"}),
        ]
        with patch(SESSION_PATH, return_value=session):
            self.query(order)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.FAILED)
        self.assertEqual(order.payment_details["failure_reason"], "DS timeout user cannot be reached")

    def test_query_failure_leaves_payment_status_alone(self):
        order = self.place_order()
        self.mark_initiated(order, "ws_CO_query")
        upstream = {"errorCode": "500.001.1001", "errorMessage": "The transaction is being processed"}
        session = MagicMock()
        session.request.side_effect = [_token(), _response(500, upstream)]
        with patch(SESSION_PATH, return_value=session):
            response = self.query(order)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"]["details"], upstream)

        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.INITIATED)
        self.assertEqual(order.payment_details["query_error"], upstream)
        self.assertIn("last_queried_at", order.payment_details)


class StatusResultCallbackTests(MpesaTestCase):
    def test_transaction_result_is_stored(self):
        order = self.place_order()
        body = {"Result": {"ResultCode": 0, "ResultDesc": "The service request is processed successfully."}}
        response = APIClient().post(
            f"/api/mpesa/callback/transaction/{order.id}/?secret=s3cret", body, format="json"
        )
        self.assertEqual(response.json(), {"ResultCode": 0, "ResultDesc": "Accepted"})
        order.refresh_from_db()
        stored = order.payment_details["status_query_result"]
        self.assertEqual(stored["kind"], "result")
        self.assertEqual(stored["body"], body)

    def test_queue_timeout_is_stored(self):
        order = self.place_order()
        APIClient().post(f"/api/mpesa/callback/timeout/{order.id}/?secret=s3cret", {}, format="json")
        order.refresh_from_db()
        self.assertEqual(order.payment_details["status_query_result"]["kind"], "timeout")

    def test_result_requires_secret(self):
        order = self.place_order()
        response = APIClient().post(f"/api/mpesa/callback/transaction/{order.id}/", {}, format="json")
        self.assertEqual(response.status_code, 403)


class OrderPaymentViewTests(MpesaTestCase):
    def test_owner_and_admin_can_view(self):
        order = self.place_order()
        response = self.client.get(f"/api/mpesa/orders/{order.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["payment_status"], "pending")

        self.client.force_authenticate(_make_user("admin@example.com", AccountRole.ADMIN.value))
        self.assertEqual(self.client.get(f"/api/mpesa/orders/{order.id}/").status_code, 200)

        self.client.force_authenticate(_make_user("nosy@example.com"))
        self.assertEqual(self.client.get(f"/api/mpesa/orders/{order.id}/").status_code, 403)


class PaymentPolicyTests(SimpleTestCase):
    def test_msisdn_forms_normalize_identically(self):
        for raw in ("0712345678", "254712345678", "+254712345678"):
            self.assertEqual(normalize_msisdn(raw), "254712345678")
        self.assertEqual(normalize_msisdn("0112345678"), "254112345678")

    def test_msisdn_rejects_garbage(self):
        for raw in ("", "12345", "0612345678x", "+255712345678", "07123456789"):
            with self.assertRaises(PaymentValidationError):
                normalize_msisdn(raw)

    def test_amount_rules(self):
        self.assertEqual(validate_amount("1"), 1)
        self.assertEqual(validate_amount("10.5"), 11)
        self.assertEqual(validate_amount(500), 500)
        for raw in ("0", "0.99", "-5", "abc", None, "NaN"):
            with self.assertRaises(PaymentValidationError):
                validate_amount(raw)

    def test_password_is_base64_of_shortcode_passkey_timestamp(self):
        value = stk_password("174379", "key", "20240101120000")
        self.assertEqual(base64.b64decode(value).decode(), "174379key20240101120000")


class CallbackParsingTests(SimpleTestCase):
    def test_reads_receipt_from_either_metadata_name(self):
        body = _callback_body(0)
        items = body["Body"]["stkCallback"]["CallbackMetadata"]["Item"]
        items[1] = {"Name": "MpesaReceipt", "Value": "ALT0000001"}
        self.assertEqual(parse_stk_callback(body).receipt, "ALT0000001")

    def test_checkout_id_casing(self):
        body = {"Body": {"stkCallback": {"checkoutRequestID": "ws_CO_x", "ResultCode": "0"}}}
        parsed = parse_stk_callback(body)
        self.assertEqual(parsed.checkout_request_id, "ws_CO_x")
        self.assertTrue(parsed.succeeded)

    def test_rejects_malformed(self):
        for body in (None, [], {}, {"Body": []}, {"Body": {"stkCallback": {"ResultCode": True}}}):
            with self.assertRaises(InvalidCallbackPayload):
                parse_stk_callback(body)

    def test_query_response_without_result_is_not_definitive(self):
        self.assertIsNone(StkCallback.from_query_response({"ResponseCode": "0"}))


class ReconcileTests(SimpleTestCase):
    def _callback(self, code, receipt=None, desc=""):
        return StkCallback(
            result_code=code,
            result_desc=desc,
            checkout_request_id="ws_CO_1",
            merchant_request_id=None,
            receipt=receipt,
        )

    def test_paid_is_terminal(self):
        state = PaymentState(payment_status="paid", details=PaymentDetails(transaction_id="A1"))
        for code in (0, 1, 1032):
            outcome = reconcile(state, self._callback(code, receipt="B2"), "2024-01-01T00:00:00+03:00")
            self.assertFalse(outcome.changed)
            self.assertIs(outcome.state, state)
            self.assertEqual(outcome.acknowledgement, ALREADY_PROCESSED)

    def test_success_keeps_previous_receipt_when_missing(self):
        state = PaymentState(payment_status="initiated", details=PaymentDetails(transaction_id="OLD1"))
        outcome = reconcile(state, self._callback(0), "now")
        self.assertEqual(outcome.state.payment_status, "paid")
        self.assertEqual(outcome.state.details.transaction_id, "OLD1")
        self.assertEqual(outcome.state.details.paid_at, "now")

    def test_failure_reason_defaults_to_unknown(self):
        state = PaymentState(payment_status="initiated", details=PaymentDetails())
        outcome = reconcile(state, self._callback(1), "now")
        self.assertEqual(outcome.state.payment_status, "failed")
        self.assertEqual(outcome.state.details.failure_reason, "Unknown")


class PaymentDetailsTests(SimpleTestCase):
    def test_merge_rejects_unknown_keys(self):
        with self.assertRaises(PaymentDetailsError):
            PaymentDetails().merge(favourite_colour="green")

    def test_merge_keeps_earlier_stages_and_none_clears(self):
        details = PaymentDetails.from_dict({"checkout_request_id": "ws_CO_1", "error": "boom"})
        merged = details.merge(paid_at="now", error=None)
        self.assertEqual(merged.to_dict(), {"checkout_request_id": "ws_CO_1", "paid_at": "now"})


class MpesaConfigTests(SimpleTestCase):
    def _config(self, **overrides) -> MpesaConfig:
        values = dict(
            environment="production",
            gateway="daraja",
            consumer_key="k",
            consumer_secret="s",
            shortcode="600000",
            passkey="p",
            callback_url="https://shop.example.test/api/mpesa/callback",
            callback_secret="secret",
            initiator_name="api",
            initiator_password="pw",
        )
        values.update(overrides)
        return MpesaConfig(**values)

    def test_base_url_follows_environment(self):
        self.assertEqual(self._config().base_url, "https://api.safaricom.co.ke")
        self.assertEqual(self._config(environment="sandbox").base_url, "https://sandbox.safaricom.co.ke")

    def test_production_requires_credentials(self):
        with self.assertRaises(ImproperlyConfigured):
            self._config(passkey="").check_deployment(environment="production")
        with self.assertRaises(ImproperlyConfigured):
            self._config(environment="sandbox").check_deployment(environment="production")
        self._config().check_deployment(environment="production")
        self._config(passkey="").check_deployment(environment="development")
