"""Per-service circuit breaker.

Fails fast when a backend service is judged unhealthy so a failing service
cannot tie up every caller.

States:
    CLOSED: Requests pass through. Failures within the rolling window are
        counted; reaching the threshold opens the breaker. A success resets
        the count.
    OPEN: Requests are rejected with CircuitOpenError without invoking the
        handler. Once the cooldown has elapsed the next request moves the
        breaker to HALF_OPEN and is let through as the trial.
    HALF_OPEN: Exactly one trial request at a time. Success closes the
        breaker, failure reopens it.

Handler execution that exceeds the configured timeout counts as a failure.
Cancellation counts as neither success nor failure.

Example:
    >>> breaker = CircuitBreaker("UserService", CircuitBreakerConfig(failure_threshold=5))
    >>> response = await breaker.call(handler.execute, request)
"""

import asyncio
import logging
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Optional

from fm_gateway.config.settings import CircuitBreakerConfig
from fm_gateway.models.circuit import CircuitState, CircuitStats, CircuitStatus
from fm_gateway.models.exceptions import (
    CircuitOpenError,
    HandlerError,
    ServiceTimeoutError,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class _HandlerTimeout(Exception):
    """A timeout raised inside the handler, kept apart from the breaker's deadline."""

    def __init__(self, original: BaseException):
        super().__init__(str(original))
        self.original = original


async def _shield_handler_timeout(func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
    try:
        return await func(*args, **kwargs)
    except asyncio.TimeoutError as e:
        raise _HandlerTimeout(e) from e


class CircuitBreaker:
    """Circuit breaker guarding a single service.

    All state lives behind one lock that is never held across an ``await``.
    Each admitted call receives the breaker's current generation; a state
    transition bumps the generation, so outcomes of calls admitted under an
    earlier state are counted in stats but do not move the state machine.

    Attributes:
        name: Service name this breaker guards
        config: Thresholds, timings and timeout
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.clock = clock or time.monotonic

        self._state = CircuitState.CLOSED
        self._failure_times: Deque[float] = deque()
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False
        self._generation = 0
        self._lock = threading.Lock()
        self._stats = CircuitStats()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        """Current state. Reading never triggers the OPEN -> HALF_OPEN move."""
        with self._lock:
            return self._state

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            self._prune_failures(self.clock())
            return len(self._failure_times)

    @property
    def opened_at(self) -> Optional[float]:
        with self._lock:
            return self._opened_at

    @property
    def stats(self) -> CircuitStats:
        with self._lock:
            return self._stats.model_copy()

    def status(self) -> CircuitStatus:
        """Snapshot of the breaker for status reporting."""
        with self._lock:
            now = self.clock()
            self._prune_failures(now)
            return CircuitStatus(
                name=self.name,
                state=self._state,
                consecutive_failures=len(self._failure_times),
                opened_at=self._opened_at,
                retry_after=self._retry_after(now),
                stats=self._stats.model_copy(),
            )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition_to(self, new_state: CircuitState, now: float) -> None:
        old_state = self._state
        self._state = new_state
        self._generation += 1
        self._trial_in_flight = False
        self._stats.state_changes += 1
        self._stats.last_state_change = utcnow()

        if new_state == CircuitState.CLOSED:
            self._failure_times.clear()
            self._opened_at = None
            logger.info(f"[CircuitBreaker] '{self.name}' {old_state.value} -> closed")
        elif new_state == CircuitState.OPEN:
            self._opened_at = now
            logger.warning(
                f"[CircuitBreaker] '{self.name}' {old_state.value} -> open "
                f"(cooldown {self.config.cooldown}s)"
            )
        else:
            logger.info(f"[CircuitBreaker] '{self.name}' open -> half_open, admitting trial")

    def _prune_failures(self, now: float) -> None:
        window = self.config.rolling_window
        if window is None:
            return
        while self._failure_times and now - self._failure_times[0] > window:
            self._failure_times.popleft()

    def _retry_after(self, now: float) -> Optional[float]:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None
        return max(0.0, self.config.cooldown - (now - self._opened_at))

    def _acquire(self) -> Optional[int]:
        """Admit a request, returning its generation, or None to reject it."""
        with self._lock:
            now = self.clock()
            self._stats.total_requests += 1

            if not self.config.enabled or self._state == CircuitState.CLOSED:
                return self._generation

            if self._state == CircuitState.OPEN:
                if self._opened_at is not None and now - self._opened_at >= self.config.cooldown:
                    self._transition_to(CircuitState.HALF_OPEN, now)
                    self._trial_in_flight = True
                    return self._generation
                self._stats.rejected_requests += 1
                return None

            # HALF_OPEN: one trial at a time
            if not self._trial_in_flight:
                self._trial_in_flight = True
                return self._generation
            self._stats.rejected_requests += 1
            return None

    def allow_request(self) -> bool:
        """Check whether a request may proceed.

        An admitted request in HALF_OPEN holds the trial slot until its
        outcome is recorded with record_success, record_failure or release.

        Returns:
            True if the request can proceed, False if it must fail fast
        """
        return self._acquire() is not None

    def record_success(self, generation: Optional[int] = None) -> None:
        """Record a successful request."""
        with self._lock:
            now = self.clock()
            self._stats.successful_requests += 1
            self._stats.last_success_time = utcnow()

            if generation is not None and generation != self._generation:
                return
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED, now)
            elif self._state == CircuitState.CLOSED:
                self._failure_times.clear()

    def record_failure(self, generation: Optional[int] = None) -> None:
        """Record a failed request."""
        with self._lock:
            now = self.clock()
            self._stats.failed_requests += 1
            self._stats.last_failure_time = utcnow()

            if generation is not None and generation != self._generation:
                return
            if not self.config.enabled:
                return

            if self._state == CircuitState.CLOSED:
                self._failure_times.append(now)
                self._prune_failures(now)
                if len(self._failure_times) >= self.config.failure_threshold:
                    self._transition_to(CircuitState.OPEN, now)
            elif self._state == CircuitState.HALF_OPEN:
                # Any failure in half-open reopens the circuit
                self._transition_to(CircuitState.OPEN, now)

    def release(self, generation: Optional[int] = None) -> None:
        """Release an admitted request without recording an outcome.

        Used for cancelled calls. Frees the half-open trial slot so the next
        request can become the trial; the state itself is unchanged.
        """
        with self._lock:
            self._stats.cancelled_requests += 1
            if generation is not None and generation != self._generation:
                return
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False

    def reset(self) -> None:
        """Force the breaker to CLOSED and clear the failure count."""
        with self._lock:
            self._transition_to(CircuitState.CLOSED, self.clock())

    def force_open(self) -> None:
        """Force the breaker to OPEN (for maintenance or tests)."""
        with self._lock:
            self._transition_to(CircuitState.OPEN, self.clock())

    # ------------------------------------------------------------------
    # Guarded execution
    # ------------------------------------------------------------------

    async def call(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Execute an async function through the breaker.

        Args:
            func: Coroutine function to call
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            The function's result, unchanged

        Raises:
            CircuitOpenError: If the breaker rejects the request
            ServiceTimeoutError: If the call exceeds the configured timeout
            HandlerError: If the call raises
        """
        generation = self._acquire()
        if generation is None:
            with self._lock:
                retry_after = self._retry_after(self.clock())
            logger.warning(f"[CircuitBreaker] Rejecting request to '{self.name}': circuit open")
            raise CircuitOpenError(self.name, retry_after=retry_after)

        timeout = self.config.handler_timeout
        try:
            if timeout is not None:
                result = await asyncio.wait_for(
                    _shield_handler_timeout(func, *args, **kwargs), timeout=timeout
                )
            else:
                result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            self.release(generation)
            raise
        except asyncio.TimeoutError as e:
            self.record_failure(generation)
            if timeout is None:
                # No deadline of ours, so the handler raised it
                raise HandlerError(self.name, cause=e) from e
            logger.warning(f"[CircuitBreaker] '{self.name}' timed out after {timeout}s")
            raise ServiceTimeoutError(self.name, timeout=timeout, cause=e) from e
        except _HandlerTimeout as e:
            cause = e.original
            self.record_failure(generation)
            logger.warning(
                f"[CircuitBreaker] '{self.name}' failed: {type(cause).__name__}: {cause}"
            )
            raise HandlerError(self.name, cause=cause) from cause
        except Exception as e:
            self.record_failure(generation)
            logger.warning(f"[CircuitBreaker] '{self.name}' failed: {type(e).__name__}: {e}")
            raise HandlerError(self.name, cause=e) from e
        except BaseException:
            # KeyboardInterrupt, SystemExit and the like: no outcome, free the slot
            self.release(generation)
            raise

        self.record_success(generation)
        return result

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self.name!r}, state={self._state.value})"
