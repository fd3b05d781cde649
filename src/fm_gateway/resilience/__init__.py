"""Resilience wrapper: per-service circuit breaking and timeouts."""

from fm_gateway.resilience.circuit_breaker import CircuitBreaker

__all__ = [
    "CircuitBreaker",
]
