"""Service Registry for Gateway Routing

Holds the mapping from service name to handler, plus each service's lazily
created circuit breaker.

Entries are spread across independently locked shards so registration,
unregistration and lookup of names in different shards never contend. An
entry is swapped whole under its shard lock, so a concurrent lookup sees
either the old handler or the new one, never a partial entry.
"""

import logging
import threading
import zlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from fm_gateway.config.settings import CircuitBreakerConfig
from fm_gateway.handlers.base import ServiceHandler, as_handler
from fm_gateway.models.exceptions import ServiceValidationError
from fm_gateway.resilience.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

BreakerFactory = Callable[[str, Optional[CircuitBreakerConfig]], CircuitBreaker]


def validate_service_name(name: Any) -> str:
    """Validate a service name.

    Args:
        name: Candidate service name

    Returns:
        The name, unchanged

    Raises:
        ServiceValidationError: If name is not a non-empty, non-blank string
    """
    if not isinstance(name, str):
        raise ServiceValidationError(
            f"Service name must be a string, got {type(name).__name__}"
        )
    if not name.strip():
        raise ServiceValidationError(
            "Service name must not be empty", service_name=name
        )
    return name


@dataclass
class ServiceEntry:
    """A registered service: its handler and, once invoked, its breaker."""

    name: str
    handler: ServiceHandler
    breaker_config: Optional[CircuitBreakerConfig] = None
    breaker: Optional[CircuitBreaker] = None


class _Shard:
    __slots__ = ("lock", "entries")

    def __init__(self):
        self.lock = threading.Lock()
        self.entries: Dict[str, ServiceEntry] = {}


class ServiceRegistry:
    """Registry of named service handlers.

    The registry is explicit state owned by a Gateway and passed to whatever
    needs it; there is no module-level instance.

    Example:
        ```python
        registry = ServiceRegistry()
        registry.register("UserService", user_handler)
        handler = registry.lookup("UserService")
        registry.unregister("UserService")
        ```
    """

    def __init__(
        self,
        shards: int = 16,
        breaker_factory: Optional[BreakerFactory] = None,
    ):
        """Initialize the registry.

        Args:
            shards: Number of independently locked shards
            breaker_factory: Creates a circuit breaker for a service name and
                its registration-time config (default: CircuitBreaker(name, config))
        """
        if shards < 1:
            raise ValueError(f"shards must be >= 1, got {shards}")
        self._shards: List[_Shard] = [_Shard() for _ in range(shards)]
        self._breaker_factory = breaker_factory or (
            lambda name, config: CircuitBreaker(name, config)
        )

        logger.info(f"ServiceRegistry initialized: shards={shards}")

    def _shard_for(self, name: str) -> _Shard:
        # crc32 is stable across processes, unlike hash() on str
        return self._shards[zlib.crc32(name.encode("utf-8")) % len(self._shards)]

    def register(
        self,
        name: str,
        handler: Any,
        breaker_config: Optional[CircuitBreakerConfig] = None,
    ) -> None:
        """Register a service or replace an existing one (last write wins).

        Replacing a handler discards the previous handler's circuit breaker.

        Args:
            name: Service name
            handler: ServiceHandler, object with ``execute``, or plain callable
            breaker_config: Breaker configuration for this service only

        Raises:
            ServiceValidationError: If name or handler is unusable
        """
        validate_service_name(name)
        try:
            service_handler = as_handler(handler)
        except ServiceValidationError as e:
            raise ServiceValidationError(e.message, service_name=name) from e

        entry = ServiceEntry(name=name, handler=service_handler, breaker_config=breaker_config)
        shard = self._shard_for(name)
        with shard.lock:
            replaced = name in shard.entries
            shard.entries[name] = entry

        if replaced:
            logger.info(f"Replaced service: {name} -> {service_handler!r}")
        else:
            logger.info(f"Registered service: {name} -> {service_handler!r}")

    def unregister(self, name: str) -> bool:
        """Remove a service and its circuit breaker.

        Unknown names are a no-op.

        Returns:
            True if an entry was removed
        """
        if not isinstance(name, str):
            return False
        shard = self._shard_for(name)
        with shard.lock:
            entry = shard.entries.pop(name, None)

        if entry is None:
            logger.debug(f"Unregister ignored, service not registered: {name}")
            return False
        logger.info(f"Unregistered service: {name}")
        return True

    def get_entry(self, name: str) -> Optional[ServiceEntry]:
        """Get the entry for a name, or None."""
        if not isinstance(name, str):
            return None
        shard = self._shard_for(name)
        with shard.lock:
            return shard.entries.get(name)

    def lookup(self, name: str) -> Optional[ServiceHandler]:
        """Get the handler registered under a name, or None.

        Never blocks on handler execution.
        """
        entry = self.get_entry(name)
        return entry.handler if entry is not None else None

    def circuit_breaker(self, entry: ServiceEntry) -> CircuitBreaker:
        """Get the entry's circuit breaker, creating it on first use."""
        if entry.breaker is not None:
            return entry.breaker
        shard = self._shard_for(entry.name)
        with shard.lock:
            if entry.breaker is None:
                entry.breaker = self._breaker_factory(entry.name, entry.breaker_config)
                logger.debug(f"Created circuit breaker for {entry.name}")
            return entry.breaker

    def get_circuit_breaker(self, name: str) -> Optional[CircuitBreaker]:
        """Get a service's breaker if it exists, without creating one."""
        entry = self.get_entry(name)
        return entry.breaker if entry is not None else None

    def list_services(self) -> List[str]:
        """List registered service names, sorted."""
        names: List[str] = []
        for shard in self._shards:
            with shard.lock:
                names.extend(shard.entries.keys())
        return sorted(names)

    def entries(self) -> List[ServiceEntry]:
        """Snapshot of all registered entries."""
        result: List[ServiceEntry] = []
        for shard in self._shards:
            with shard.lock:
                result.extend(shard.entries.values())
        return result

    def clear(self) -> List[ServiceEntry]:
        """Remove every entry, returning what was removed."""
        removed: List[ServiceEntry] = []
        for shard in self._shards:
            with shard.lock:
                removed.extend(shard.entries.values())
                shard.entries.clear()
        logger.info(f"ServiceRegistry cleared: {len(removed)} services removed")
        return removed

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get_entry(name) is not None

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total
