from __future__ import annotations


class PaymentDomainError(ValueError):
    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class PaymentValidationError(PaymentDomainError):
    pass


class PaymentNotFoundError(PaymentDomainError):
    pass


class PaymentPermissionError(PaymentDomainError):
    pass


class PaymentConflictError(PaymentDomainError):
    pass


class PaymentDetailsError(PaymentDomainError):
    """Write to payment_details with a key outside the known stage fields."""


class CallbackAuthError(PaymentDomainError):
    pass


class InvalidCallbackPayload(PaymentDomainError):
    pass


class GatewayError(Exception):
    """Outbound call to the payment provider failed.

    ``status_code`` is the HTTP status the API answers with; ``details`` is
    forwarded to the client as-is.
    """

    status_code = 500

    def __init__(self, message: str, *, details=None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class GatewayHTTPError(GatewayError):
    """Provider answered with a 4xx/5xx."""


class GatewayTimeoutError(GatewayError):
    status_code = 408


class GatewayRequestError(GatewayError):
    """Request could not be built or sent, or the answer was unusable."""
