"""Errors raised by the booking lifecycle and its collaborators.

Routes catch ``BookingError`` and turn it into ``{"error": ..., "retryable": ...}``
with ``status_code``.
"""


class BookingError(Exception):
    status_code = 500
    retryable = False

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    default_message = "Booking operation failed"

    @property
    def message(self) -> str:
        return str(self)


class InvalidRequest(BookingError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(BookingError):
    status_code = 404
    default_message = "Booking not found"


class InvalidState(BookingError):
    status_code = 409
    default_message = "Operation not allowed for this booking"


class PersistenceError(BookingError):
    status_code = 500
    default_message = "Failed to save booking"


class StoreUnavailable(BookingError):
    status_code = 503
    retryable = True
    default_message = "Booking store unavailable, please retry"


class GatewayUnavailable(BookingError):
    status_code = 503
    retryable = True
    default_message = "Payment provider unavailable, please retry"


class PaymentGatewayError(BookingError):
    status_code = 502
    default_message = "Payment provider rejected the request"


class ConfigurationError(BookingError):
    status_code = 500
    default_message = "Payment provider not configured"
