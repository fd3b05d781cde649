"""FaultMaven Gateway Core

Service registry, exact-name routing and per-service circuit breaking for the
FaultMaven API gateway.
"""

__version__ = "0.1.0"

# Export models first (no dependencies)
from fm_gateway.models import (
    CircuitOpenError,
    CircuitState,
    CircuitStatus,
    GatewayError,
    HandlerError,
    ServiceNotFoundError,
    ServiceTimeoutError,
    ServiceValidationError,
)

from fm_gateway.config import CircuitBreakerConfig, GatewaySettings
from fm_gateway.handlers import FunctionHandler, HttpServiceHandler, ServiceHandler
from fm_gateway.discovery import ServiceRegistry
from fm_gateway.resilience import CircuitBreaker
from fm_gateway.routing import Router
from fm_gateway.gateway import Gateway

__all__ = [
    # Facade
    "Gateway",
    # Components
    "ServiceRegistry",
    "Router",
    "CircuitBreaker",
    # Handlers
    "ServiceHandler",
    "FunctionHandler",
    "HttpServiceHandler",
    # Configuration
    "CircuitBreakerConfig",
    "GatewaySettings",
    # Models
    "CircuitState",
    "CircuitStatus",
    # Errors
    "GatewayError",
    "ServiceValidationError",
    "ServiceNotFoundError",
    "CircuitOpenError",
    "ServiceTimeoutError",
    "HandlerError",
]
