"""
Request context middleware.

- Accepts an incoming `X-Request-Id` (or generates a UUID4) and echoes it back.
- Adds `X-Response-Time-ms` to every response.
- Emits one log line per request on the `soko.request` logger.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from .context import reset_request_id, set_request_id

logger = logging.getLogger("soko.request")

_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def _incoming_request_id(request) -> str:
    value = (request.META.get("HTTP_X_REQUEST_ID") or "").strip()
    if value and _SAFE_REQUEST_ID.match(value):
        return value
    return str(uuid.uuid4())


class RequestContextMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = _incoming_request_id(request)
        request.request_id = request_id
        token = set_request_id(request_id)
        started = time.monotonic()
        try:
            response = self.get_response(request)
            elapsed_ms = int((time.monotonic() - started) * 1000)
            response["X-Request-Id"] = request_id
            response["X-Response-Time-ms"] = str(elapsed_ms)

            user = getattr(request, "user", None)
            logger.info(
                "%s %s %s %sms",
                request.method,
                request.path,
                response.status_code,
                elapsed_ms,
                extra={
                    "user_id": getattr(user, "id", None) if getattr(user, "is_authenticated", False) else None,
                    "status_code": response.status_code,
                    "latency_ms": elapsed_ms,
                },
            )
            return response
        finally:
            reset_request_id(token)
