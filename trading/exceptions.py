"""Error taxonomy of the trading core.

Every error carries a human readable message plus context identifying the
offending line or entity. They are DRF ``APIException`` subclasses, so the
HTTP layer renders them without extra mapping.
"""

from rest_framework import status
from rest_framework.exceptions import APIException


class TradingError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Trading operation failed."
    default_code = "trading_error"

    def __init__(self, message=None, *, code=None, **context):
        self.message = message or str(self.default_detail)
        self.context = context
        self.code = code or self.default_code
        super().__init__(detail={"message": self.message, **context}, code=self.code)

    def __str__(self):
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class ValidationError(TradingError):
    default_detail = "Invalid input."
    default_code = "validation_error"


class NotFound(TradingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class InvalidState(TradingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not allowed in the current state."
    default_code = "invalid_state"


class InsufficientStock(TradingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Not enough stock."
    default_code = "insufficient_stock"


class Conflict(TradingError):
    """Concurrent transaction contention. Safe to retry."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Concurrent update detected, please retry."
    default_code = "conflict"


class InternalError(TradingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal error."
    default_code = "internal_error"
