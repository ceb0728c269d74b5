"""
Base Service Interface

All services inherit from this base class. The error taxonomy surfaced to
callers of the query interface lives here too.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for all services.

    Each service:
    - Has a defined input type
    - Has a defined output type
    - Can check its health
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name for logging."""
        pass

    @abstractmethod
    async def execute(self, input_data: InputT) -> OutputT:
        """
        Execute the service's main function.

        Args:
            input_data: Validated input conforming to InputT schema

        Returns:
            Output conforming to OutputT schema

        Raises:
            ServiceError: If execution fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if service is healthy and can process requests."""
        pass


# =============================================================================
# ERRORS
# =============================================================================


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, service_name: str, message: str, details: dict = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class InsufficientHistoryError(ServiceError):
    """Not enough candles for an indicator lookback."""

    def __init__(self, service_name: str, required: int, available: int, what: str = ""):
        label = f"{what}: " if what else ""
        super().__init__(
            service_name,
            f"{label}need {required} candles, have {available}",
            {"required": required, "available": available},
        )
        self.required = required
        self.available = available


class InvalidParametersError(ServiceError):
    """Bad symbol, timeframe, direction or entry price."""
    pass


class InvalidEntryPriceError(InvalidParametersError):
    pass


class InvalidDirectionError(InvalidParametersError):
    pass


class InvalidTimeframeError(InvalidParametersError):
    pass


class RateLimitedError(ServiceError):
    """Local quota exceeded. No upstream call was attempted."""
    pass


class CircuitOpenError(ServiceError):
    """Circuit breaker is open. No upstream call was attempted."""
    pass


class UpstreamUnavailableError(ServiceError):
    """Network or timeout failure from the market data gateway."""
    pass


class CalculationError(ServiceError):
    """A numeric invariant was violated."""
    pass


class SignalNotFoundError(ServiceError):
    """No live signal for the requested pair."""
    pass
