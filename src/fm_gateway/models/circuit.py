"""Circuit breaker state and status models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # One trial request in flight


class CircuitStats(BaseModel):
    """Counters for breaker monitoring."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    cancelled_requests: int = 0
    state_changes: int = 0
    last_failure_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None
    last_state_change: Optional[datetime] = None

    @property
    def failure_rate(self) -> float:
        """Failure rate as a percentage of completed requests."""
        total = self.successful_requests + self.failed_requests
        if total == 0:
            return 0.0
        return (self.failed_requests / total) * 100


class CircuitStatus(BaseModel):
    """Point-in-time snapshot of one service's circuit breaker."""

    name: str = Field(description="Service name the breaker guards")
    state: CircuitState = Field(description="Current breaker state")
    consecutive_failures: int = Field(
        default=0,
        description="Failures counted toward the threshold within the rolling window",
    )
    opened_at: Optional[float] = Field(
        default=None,
        description="Clock reading when the breaker last opened",
    )
    retry_after: Optional[float] = Field(
        default=None,
        description="Seconds until an open breaker admits a trial request",
    )
    stats: CircuitStats = Field(default_factory=CircuitStats)
