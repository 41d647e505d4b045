from __future__ import annotations

import logging

from .context import get_request_id


class RequestIdFilter(logging.Filter):
    """Stamps every record with the id of the request being served, or '-'."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id() or "-"
        return True
