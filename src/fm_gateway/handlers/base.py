"""
Service handler capability.

A service handler is anything exposing a single ``execute(request)`` operation.
The gateway stores handlers by capability rather than by class hierarchy: any
object with an async ``execute`` satisfies ServiceHandler, and plain callables
or objects with a synchronous ``execute`` are adapted by FunctionHandler.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from fm_gateway.models.exceptions import ServiceValidationError


@runtime_checkable
class ServiceHandler(Protocol):
    """Capability implemented by every backend service."""

    async def execute(self, request: Any) -> Any:
        """Execute a request and return the service's response.

        Raising any exception reports failure to the gateway.
        """
        ...


class FunctionHandler:
    """Adapts a callable into a ServiceHandler.

    Coroutine functions are awaited directly. Synchronous callables run in a
    worker thread so blocking I/O never stalls the event loop.

    Usage:
        gateway.register_service("UserService", FunctionHandler(lambda req: req))
    """

    def __init__(self, func: Callable[[Any], Union[Any, Awaitable[Any]]], name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, "__qualname__", type(func).__name__)
        self._is_async = inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
            getattr(func, "__call__", None)
        )

    async def execute(self, request: Any) -> Any:
        if self._is_async:
            return await self.func(request)
        result = await asyncio.to_thread(self.func, request)
        # Sync callables may still hand back an awaitable
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"FunctionHandler({self.name})"


def as_handler(candidate: Any) -> ServiceHandler:
    """Coerce a handler candidate into a ServiceHandler.

    Args:
        candidate: Object with an ``execute`` method, or a plain callable

    Returns:
        The candidate itself when its ``execute`` is async, otherwise a
        FunctionHandler wrapping it

    Raises:
        ServiceValidationError: If the candidate is neither
    """
    execute = getattr(candidate, "execute", None)
    if execute is not None and callable(execute):
        if inspect.iscoroutinefunction(execute):
            return candidate
        return FunctionHandler(execute, name=type(candidate).__name__)

    if candidate is not None and callable(candidate):
        return FunctionHandler(candidate)

    raise ServiceValidationError(
        f"Handler must expose execute(request) or be callable, got {type(candidate).__name__}"
    )
