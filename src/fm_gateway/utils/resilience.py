"""Caller-side retry policies for gateway requests.

The gateway never retries on its own. Callers that want retries wrap their
``gateway.handle`` calls with these tenacity policies. Only transient service
failures are retried: HandlerError and ServiceTimeoutError. Validation,
not-found and circuit-open errors are returned immediately, since retrying
them only adds load to a service the breaker is protecting.
"""

import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from fm_gateway.models.exceptions import HandlerError, ServiceTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (HandlerError, ServiceTimeoutError)


def is_retryable(exc: BaseException) -> bool:
    """Whether a gateway error is worth retrying."""
    return isinstance(exc, RETRYABLE_ERRORS)


def _log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log a retry with the service name the failure came from."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    service = getattr(exc, "service_name", None) or "unknown"
    fn_name = getattr(retry_state.fn, "__name__", "call")
    logger.warning(
        f"[Resilience] Retry attempt {retry_state.attempt_number} for "
        f"{fn_name} (service={service}) after {retry_state.seconds_since_start:.1f}s. "
        f"Exception: {exc if exc else 'Unknown'}"
    )


def create_gateway_retry(
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 8,
    multiplier: float = 1,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Create a retry decorator for calls into the gateway.

    Args:
        max_attempts: Maximum number of attempts, including the first
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        multiplier: Exponential backoff multiplier

    Returns:
        A retry decorator that retries HandlerError and ServiceTimeoutError
        and re-raises the last error when attempts run out

    Example:
        ```python
        gateway_retry = create_gateway_retry(max_attempts=4)

        @gateway_retry
        async def get_user(user_id: str):
            return await gateway.handle("UserService", {"user_id": user_id})
        ```
    """
    return retry(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        before_sleep=_log_retry_attempt,
        reraise=True,
    )


# Default caller-side policy
# - Up to 3 attempts, waiting 0.5s-8s with exponential backoff
# - Re-raises the last gateway error if every attempt fails
gateway_retry = create_gateway_retry()


async def handle_with_retry(gateway: Any, name: str, request: Any, **retry_kwargs: Any) -> Any:
    """Call ``gateway.handle`` under a retry policy.

    Args:
        gateway: Gateway instance
        name: Service name
        request: Opaque request payload
        **retry_kwargs: Arguments for create_gateway_retry

    Returns:
        The handler's response
    """
    policy = create_gateway_retry(**retry_kwargs) if retry_kwargs else gateway_retry

    @policy
    async def _call() -> Any:
        return await gateway.handle(name, request)

    return await _call()
