"""
Error taxonomy -> HTTP status mapping for the query interface.
"""

from fastapi import HTTPException

from quantsignal.services.base import (
    CalculationError,
    CircuitOpenError,
    InsufficientHistoryError,
    InvalidParametersError,
    RateLimitedError,
    ServiceError,
    SignalNotFoundError,
    UpstreamUnavailableError,
)

STATUS_CODES: list[tuple[type[ServiceError], int]] = [
    (SignalNotFoundError, 404),
    (InsufficientHistoryError, 422),
    (InvalidParametersError, 400),
    (RateLimitedError, 429),
    (CircuitOpenError, 503),
    (UpstreamUnavailableError, 503),
    (CalculationError, 500),
]


def to_http_exception(error: ServiceError) -> HTTPException:
    status = next((code for cls, code in STATUS_CODES if isinstance(error, cls)), 500)
    return HTTPException(
        status_code=status,
        detail={
            "error": type(error).__name__,
            "message": error.message,
            "details": error.details,
        },
    )
