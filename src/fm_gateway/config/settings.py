"""Gateway configuration.

Circuit breaker thresholds, timings and registry sharding are configuration,
not constants. Settings can be built directly or from environment variables.

Environment Variables:
    GATEWAY_CB_ENABLED: "true" (default) or "false"
    GATEWAY_CB_FAILURE_THRESHOLD: Failures before a breaker opens (default: 5)
    GATEWAY_CB_ROLLING_WINDOW: Seconds a failure counts toward the threshold
                               (default: 60, "none" or "0" for unbounded)
    GATEWAY_CB_COOLDOWN: Seconds an open breaker waits before a trial (default: 30)
    GATEWAY_HANDLER_TIMEOUT: Seconds a handler may run (default: 10,
                             "none" or "0" to disable)
    GATEWAY_REGISTRY_SHARDS: Number of registry lock shards (default: 16)
"""

import logging
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_DISABLED_VALUES = {"", "none", "null", "0", "off"}


class CircuitBreakerConfig(BaseModel):
    """Configuration for one service's circuit breaker."""

    enabled: bool = Field(
        default=True,
        description="When false the breaker never fails fast; the timeout still applies",
    )
    failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Failures within the rolling window that open the breaker",
    )
    rolling_window: Optional[float] = Field(
        default=60.0,
        gt=0,
        description="Seconds a failure counts toward the threshold (None = unbounded)",
    )
    cooldown: float = Field(
        default=30.0,
        ge=0,
        description="Seconds an open breaker waits before admitting a trial request",
    )
    handler_timeout: Optional[float] = Field(
        default=10.0,
        gt=0,
        description="Seconds a handler may run before the call fails (None = no limit)",
    )


class GatewaySettings(BaseModel):
    """Top-level gateway settings."""

    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    service_overrides: Dict[str, CircuitBreakerConfig] = Field(
        default_factory=dict,
        description="Per-service breaker configuration keyed by service name",
    )
    registry_shards: int = Field(
        default=16,
        ge=1,
        le=1024,
        description="Number of independently locked registry shards",
    )

    def breaker_config_for(self, service_name: str) -> CircuitBreakerConfig:
        """Resolve the breaker configuration for a service."""
        return self.service_overrides.get(service_name, self.circuit_breaker)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GatewaySettings":
        """Build settings from environment variables.

        Invalid values are logged and the default is kept.

        Args:
            environ: Mapping to read instead of ``os.environ`` (useful in tests)

        Returns:
            GatewaySettings instance
        """
        env = os.environ if environ is None else environ

        breaker: Dict[str, Any] = {}
        enabled = env.get("GATEWAY_CB_ENABLED")
        if enabled is not None:
            breaker["enabled"] = enabled.strip().lower() in ("1", "true", "yes", "on")

        threshold = _read_number(env, "GATEWAY_CB_FAILURE_THRESHOLD", int)
        if threshold is not None:
            breaker["failure_threshold"] = threshold

        cooldown = _read_number(env, "GATEWAY_CB_COOLDOWN", float)
        if cooldown is not None:
            breaker["cooldown"] = cooldown

        for env_key, field_name in (
            ("GATEWAY_CB_ROLLING_WINDOW", "rolling_window"),
            ("GATEWAY_HANDLER_TIMEOUT", "handler_timeout"),
        ):
            raw = env.get(env_key)
            if raw is None:
                continue
            if raw.strip().lower() in _DISABLED_VALUES:
                breaker[field_name] = None
                continue
            value = _read_number(env, env_key, float)
            if value is not None:
                breaker[field_name] = value

        settings: Dict[str, Any] = {}
        shards = _read_number(env, "GATEWAY_REGISTRY_SHARDS", int)
        if shards is not None:
            settings["registry_shards"] = shards

        defaults = CircuitBreakerConfig()
        for field_name, value in list(breaker.items()):
            try:
                CircuitBreakerConfig(**{field_name: value})
            except ValueError as e:
                logger.warning(
                    f"Invalid circuit breaker setting {field_name}={value!r}, "
                    f"using default {getattr(defaults, field_name)!r}: {e}"
                )
                del breaker[field_name]

        if "registry_shards" in settings:
            try:
                cls(registry_shards=settings["registry_shards"])
            except ValueError as e:
                logger.warning(
                    f"Invalid GATEWAY_REGISTRY_SHARDS={settings['registry_shards']!r}, "
                    f"using default: {e}"
                )
                del settings["registry_shards"]

        result = cls(circuit_breaker=CircuitBreakerConfig(**breaker), **settings)
        logger.info(
            f"GatewaySettings loaded: threshold={result.circuit_breaker.failure_threshold}, "
            f"window={result.circuit_breaker.rolling_window}, "
            f"cooldown={result.circuit_breaker.cooldown}, "
            f"timeout={result.circuit_breaker.handler_timeout}, "
            f"shards={result.registry_shards}"
        )
        return result


def _read_number(env: Mapping[str, str], key: str, kind: type) -> Optional[Any]:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return kind(raw.strip())
    except ValueError:
        logger.warning(f"Invalid value in {key}: {raw}")
        return None
