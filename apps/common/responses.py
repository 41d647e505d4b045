"""
JSON envelope shared by every API view.

Success: {"success": true, "data": ...}
Failure: {"success": false, "data": {}, "error": {"message": ..., "field": ...}}
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response


def api_success(data, *, http_status: int = status.HTTP_200_OK) -> Response:
    return Response({"success": True, "data": data}, status=http_status)


def api_error(
    *,
    message: str,
    field: str | None = None,
    http_status: int = status.HTTP_400_BAD_REQUEST,
    details=None,
) -> Response:
    payload: dict = {"success": False, "data": {}, "error": {"message": message}}
    if field:
        payload["error"]["field"] = field
    if details is not None:
        payload["error"]["details"] = details
    return Response(payload, status=http_status)


def client_ip(request) -> str | None:
    value = request.META.get("HTTP_X_FORWARDED_FOR") or request.META.get("REMOTE_ADDR")
    if not value:
        return None
    return value.split(",")[0].strip() or None
