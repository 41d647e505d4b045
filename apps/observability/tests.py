"""
Tests for request context, logging and health endpoints.
"""
import json
import logging

from django.test import Client, TestCase

from apps.observability.context import reset_request_id, set_request_id
from apps.observability.logging import RequestIdFilter


class HealthEndpointsTest(TestCase):
    def setUp(self):
        self.client = Client()

    def test_healthz_returns_ok(self):
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.content)
        self.assertEqual(data["status"], "ok")

    def test_healthz_rejects_post(self):
        response = self.client.post("/healthz")
        self.assertEqual(response.status_code, 405)


class ObservabilityMiddlewareTest(TestCase):
    def setUp(self):
        self.client = Client()

    def test_request_id_added_to_response(self):
        response = self.client.get("/healthz")
        self.assertIn("X-Request-Id", response)
        self.assertEqual(len(response["X-Request-Id"]), 36)  # UUID format length

    def test_incoming_request_id_is_echoed(self):
        response = self.client.get("/healthz", HTTP_X_REQUEST_ID="edge-proxy-1234")
        self.assertEqual(response["X-Request-Id"], "edge-proxy-1234")

    def test_unsafe_request_id_is_replaced(self):
        response = self.client.get("/healthz", HTTP_X_REQUEST_ID="bad id\nwith newline")
        self.assertNotEqual(response["X-Request-Id"], "bad id\nwith newline")
        self.assertEqual(len(response["X-Request-Id"]), 36)

    def test_timing_header_added(self):
        response = self.client.get("/healthz")
        self.assertIn("X-Response-Time-ms", response)
        self.assertGreaterEqual(int(response["X-Response-Time-ms"]), 0)

    def test_unknown_api_path_returns_json_404(self):
        response = self.client.get("/api/does-not-exist/")
        self.assertEqual(response.status_code, 404)
        self.assertIn("X-Request-Id", response)


class LoggingTest(TestCase):
    def setUp(self):
        self.client = Client()

    def test_request_is_logged(self):
        with self.assertLogs("soko.request", level="INFO") as captured:
            response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(any("GET /healthz 200" in line for line in captured.output))

    def test_filter_injects_current_request_id(self):
        record = logging.LogRecord("soko.test", logging.INFO, __file__, 1, "hello", None, None)
        token = set_request_id("req-abc-123")
        try:
            RequestIdFilter().filter(record)
        finally:
            reset_request_id(token)
        self.assertEqual(record.request_id, "req-abc-123")

    def test_filter_defaults_outside_request(self):
        record = logging.LogRecord("soko.test", logging.INFO, __file__, 1, "hello", None, None)
        RequestIdFilter().filter(record)
        self.assertEqual(record.request_id, "-")
