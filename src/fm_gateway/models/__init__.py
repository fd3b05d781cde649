"""
Shared data models for the gateway core.

Exceptions are dependency-free; circuit models use Pydantic.
"""

from fm_gateway.models.circuit import CircuitState, CircuitStats, CircuitStatus
from fm_gateway.models.exceptions import (
    CircuitOpenError,
    GatewayError,
    HandlerError,
    ServiceNotFoundError,
    ServiceTimeoutError,
    ServiceValidationError,
)

__all__ = [
    # Circuit breaker
    "CircuitState", "CircuitStats", "CircuitStatus",
    # Errors
    "GatewayError", "ServiceValidationError", "ServiceNotFoundError",
    "CircuitOpenError", "ServiceTimeoutError", "HandlerError",
]
