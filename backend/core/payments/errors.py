"""
Payment error taxonomy.

Every error carries the HTTP status it maps to; main.py renders them
as {"error": message}.
"""


class PaymentError(Exception):
    """Base class for errors surfaced to payment API callers."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class MissingFieldsError(PaymentError):
    status_code = 400


class InvalidRequestError(PaymentError):
    status_code = 400


class InvalidSignatureError(PaymentError):
    """Signature mismatch. Never mutate state on the strength of this request."""
    status_code = 400


class GatewayError(PaymentError):
    """Gateway lookup failed; message is already sanitised for the client."""
    status_code = 400


class NotAuthenticatedError(PaymentError):
    status_code = 401


class ForbiddenError(PaymentError):
    status_code = 403


class NotFoundError(PaymentError):
    status_code = 404


class SettlementFailedError(PaymentError):
    """A required settlement write failed; the caller should retry the whole request."""
    status_code = 500
