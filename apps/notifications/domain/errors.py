from __future__ import annotations


class EmailGatewayError(Exception):
    pass
