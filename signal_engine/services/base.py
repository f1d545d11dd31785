"""
Base Service Interface

All services inherit from this base class.
"""

from abc import ABC, abstractmethod
from numbers import Integral
from typing import Generic, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for all services.

    Each service:
    - Has a defined input type
    - Has a defined output type
    - Can validate its inputs
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

    async def validate_input(self, input_data: InputT) -> InputT:
        """
        Validate input data.
        Default implementation returns input as-is (Pydantic handles validation).
        Override for custom validation logic.
        """
        return input_data


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, service_name: str, message: str, details: dict = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class ValidationError(ServiceError):
    """Input validation error."""
    pass


class InvalidConfigurationError(ValidationError):
    """
    Malformed engine configuration: bad periods, bad weight maps,
    out-of-order candles.

    The only error class that aborts a computation. Numeric edge cases
    (short history, flat windows) resolve to documented fallbacks instead.
    """
    pass


def require_period(owner: str, name: str, value) -> int:
    """Validate a lookback period (positive int, bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, Integral) or value < 1:
        raise InvalidConfigurationError(
            owner,
            f"{name} must be a positive integer, got {value!r}",
            {name: value},
        )
    return int(value)
