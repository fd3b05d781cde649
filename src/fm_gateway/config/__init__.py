"""Gateway configuration."""

from fm_gateway.config.settings import CircuitBreakerConfig, GatewaySettings

__all__ = [
    "CircuitBreakerConfig",
    "GatewaySettings",
]
