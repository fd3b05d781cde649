"""
Request router.

Resolves a service name through the ServiceRegistry and forwards the request
to its handler. Matching is by exact name only.

The actual handler call goes through an injectable invoker, so the Gateway
can wrap it in the service's circuit breaker while the Router stays unaware
of resilience concerns.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from fm_gateway.discovery.service_registry import (
    ServiceEntry,
    ServiceRegistry,
    validate_service_name,
)
from fm_gateway.models.exceptions import ServiceNotFoundError

logger = logging.getLogger(__name__)

Invoker = Callable[[ServiceEntry, Any], Awaitable[Any]]


async def direct_invoke(entry: ServiceEntry, request: Any) -> Any:
    """Call the handler with no resilience wrapping."""
    return await entry.handler.execute(request)


class Router:
    """Routes requests to registered service handlers."""

    def __init__(self, registry: ServiceRegistry, invoker: Optional[Invoker] = None):
        self.registry = registry
        self.invoker = invoker or direct_invoke

    def resolve(self, name: str) -> ServiceEntry:
        """
        Validate a service name and look up its entry.

        Args:
            name: Service name

        Returns:
            The registered ServiceEntry

        Raises:
            ServiceValidationError: If the name is malformed
            ServiceNotFoundError: If nothing is registered under the name
        """
        validate_service_name(name)
        entry = self.registry.get_entry(name)
        if entry is None:
            logger.info(f"No route for service '{name}'")
            raise ServiceNotFoundError(name)
        return entry

    async def route(self, name: str, request: Any) -> Any:
        """
        Route a request to the named service.

        Args:
            name: Service name
            request: Opaque request payload

        Returns:
            The handler's response

        Raises:
            ServiceValidationError: If the name is malformed
            ServiceNotFoundError: If nothing is registered under the name
        """
        entry = self.resolve(name)
        logger.debug(f"Routing request to '{name}' via {entry.handler!r}")
        return await self.invoker(entry, request)
