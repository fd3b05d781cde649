"""Gateway facade.

The single entry point a transport layer calls. Composes the ServiceRegistry,
the Router and a per-service CircuitBreaker:

    caller -> Gateway.handle(name, request)
           -> Router.route (registry lookup)
           -> CircuitBreaker (pass through or fail fast, timeout)
           -> handler.execute(request)

Every error raised by ``handle`` is a GatewayError carrying the service name.
The gateway performs no retries; see fm_gateway.utils.resilience for a
caller-side retry policy.
"""

import logging
from typing import Any, Dict, List, Optional

from fm_gateway.config.settings import CircuitBreakerConfig, GatewaySettings
from fm_gateway.discovery.service_registry import ServiceEntry, ServiceRegistry
from fm_gateway.models.circuit import CircuitState, CircuitStatus
from fm_gateway.models.exceptions import GatewayError, ServiceNotFoundError
from fm_gateway.resilience.circuit_breaker import CircuitBreaker, Clock
from fm_gateway.routing.router import Router

logger = logging.getLogger(__name__)


class Gateway:
    """Service-routing gateway with per-service circuit breaking.

    Usage:
        ```python
        async with Gateway() as gateway:
            gateway.register_service("UserService", user_handler)
            response = await gateway.handle("UserService", {"user_id": "42"})
        ```
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the gateway.

        Args:
            settings: Gateway settings (default: GatewaySettings())
            clock: Monotonic time source shared by all breakers (default: time.monotonic)
        """
        self.settings = settings or GatewaySettings()
        self._clock = clock
        self.registry = ServiceRegistry(
            shards=self.settings.registry_shards,
            breaker_factory=self._create_breaker,
        )
        self.router = Router(self.registry, invoker=self._invoke)

        logger.info(
            f"Gateway initialized: threshold={self.settings.circuit_breaker.failure_threshold}, "
            f"cooldown={self.settings.circuit_breaker.cooldown}s, "
            f"timeout={self.settings.circuit_breaker.handler_timeout}s"
        )

    def _create_breaker(
        self, name: str, config: Optional[CircuitBreakerConfig]
    ) -> CircuitBreaker:
        return CircuitBreaker(
            name,
            config or self.settings.breaker_config_for(name),
            clock=self._clock,
        )

    async def _invoke(self, entry: ServiceEntry, request: Any) -> Any:
        breaker = self.registry.circuit_breaker(entry)
        return await breaker.call(entry.handler.execute, request)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def register_service(
        self,
        name: str,
        handler: Any,
        breaker_config: Optional[CircuitBreakerConfig] = None,
    ) -> None:
        """Register a service, replacing any handler already under the name.

        Raises:
            ServiceValidationError: If the name or handler is unusable
        """
        self.registry.register(name, handler, breaker_config=breaker_config)

    def unregister_service(self, name: str) -> bool:
        """Remove a service and its circuit breaker. Unknown names are a no-op."""
        return self.registry.unregister(name)

    def list_services(self) -> List[str]:
        return self.registry.list_services()

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def handle(self, name: str, request: Any) -> Any:
        """Route a request to the named service through its circuit breaker.

        Args:
            name: Service name
            request: Opaque request payload

        Returns:
            The handler's response, unchanged

        Raises:
            ServiceValidationError: Malformed service name
            ServiceNotFoundError: No handler registered under the name
            CircuitOpenError: Breaker open, handler not invoked
            ServiceTimeoutError: Handler exceeded its timeout
            HandlerError: Handler raised
        """
        try:
            return await self.router.route(name, request)
        except GatewayError as e:
            logger.debug(f"Gateway request to '{name}' failed: {e.error_code}")
            raise

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_circuit_status(self, name: str) -> CircuitStatus:
        """Get the breaker status for one service.

        Services that have not been invoked yet report a fresh CLOSED status.

        Raises:
            ServiceNotFoundError: If the service is not registered
        """
        entry = self.registry.get_entry(name)
        if entry is None:
            raise ServiceNotFoundError(name)
        if entry.breaker is None:
            return CircuitStatus(name=name, state=CircuitState.CLOSED)
        return entry.breaker.status()

    def get_service_status(self) -> Dict[str, CircuitStatus]:
        """Get breaker status for every registered service."""
        status = {}
        for entry in self.registry.entries():
            if entry.breaker is None:
                status[entry.name] = CircuitStatus(name=entry.name, state=CircuitState.CLOSED)
            else:
                status[entry.name] = entry.breaker.status()
        return dict(sorted(status.items()))

    def reset_circuit(self, name: str) -> None:
        """Force a service's breaker back to CLOSED.

        Raises:
            ServiceNotFoundError: If the service is not registered
        """
        entry = self.registry.get_entry(name)
        if entry is None:
            raise ServiceNotFoundError(name)
        if entry.breaker is not None:
            entry.breaker.reset()
        logger.info(f"Circuit reset for service '{name}'")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Drop every service and breaker, closing handlers that support it."""
        removed = self.registry.clear()
        for entry in removed:
            aclose = getattr(entry.handler, "aclose", None)
            if aclose is None:
                continue
            try:
                await aclose()
            except Exception as e:
                logger.error(f"Error closing handler for '{entry.name}': {e}")
        logger.info(f"Gateway shut down: {len(removed)} services released")

    async def __aenter__(self) -> "Gateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
