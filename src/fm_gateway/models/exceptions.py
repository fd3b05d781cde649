"""Gateway exception hierarchy.

Every error raised by the gateway core is a GatewayError subclass that carries
the service name it concerns, so callers can tell apart:
- ServiceValidationError: malformed service name or handler
- ServiceNotFoundError: no handler registered under the name
- CircuitOpenError: service judged unhealthy, handler not invoked
- ServiceTimeoutError: handler exceeded its deadline
- HandlerError: handler ran and reported failure
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""

    error_code = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        cause: Optional[BaseException] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.service_name = service_name
        self.cause = cause
        if error_code:
            self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for logging or for a transport layer to encode."""
        data: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "service_name": self.service_name,
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        if self.context:
            data["context"] = dict(self.context)
        return data

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(service_name={self.service_name!r}, "
            f"message={self.message!r})"
        )


class ServiceValidationError(GatewayError):
    """Malformed or empty service name, or an unusable handler."""

    error_code = "VALIDATION_ERROR"


class ServiceNotFoundError(GatewayError):
    """No handler is registered under the requested name."""

    error_code = "SERVICE_NOT_FOUND"

    def __init__(self, service_name: str, **kwargs: Any):
        super().__init__(
            f"No service registered under '{service_name}'",
            service_name=service_name,
            **kwargs,
        )


class CircuitOpenError(GatewayError):
    """Circuit breaker is open; the handler was not invoked."""

    error_code = "CIRCUIT_OPEN"

    def __init__(
        self,
        service_name: str,
        retry_after: Optional[float] = None,
        **kwargs: Any,
    ):
        message = f"Circuit for '{service_name}' is open, rejecting request"
        if retry_after is not None:
            message += f" (retry after {retry_after:.1f}s)"
        context = kwargs.pop("context", None) or {}
        if retry_after is not None:
            context.setdefault("retry_after", retry_after)
        super().__init__(message, service_name=service_name, context=context, **kwargs)
        self.retry_after = retry_after


class ServiceTimeoutError(GatewayError):
    """Handler execution exceeded the configured timeout."""

    error_code = "SERVICE_TIMEOUT"

    def __init__(self, service_name: str, timeout: float, **kwargs: Any):
        context = kwargs.pop("context", None) or {}
        context.setdefault("timeout", timeout)
        super().__init__(
            f"Service '{service_name}' timed out after {timeout}s",
            service_name=service_name,
            context=context,
            **kwargs,
        )
        self.timeout = timeout


class HandlerError(GatewayError):
    """Handler ran and raised; the original exception is kept as ``cause``."""

    error_code = "HANDLER_ERROR"

    def __init__(self, service_name: str, cause: BaseException, **kwargs: Any):
        super().__init__(
            f"Service '{service_name}' failed: {type(cause).__name__}: {cause}",
            service_name=service_name,
            cause=cause,
            **kwargs,
        )
