"""
Redis Circuit Breaker

Guards cache calls so that an unreachable Redis fails fast instead of
adding a socket timeout to every list request. Only connectivity failures
trip the breaker; other errors pass through untouched.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from .exceptions import RedisCircuitBreakerOpenException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"  # Calls rejected without touching Redis
    HALF_OPEN = "half_open"  # A single trial call in flight at a time


@dataclass
class CircuitBreakerConfig:
    """Thresholds for opening and closing the circuit."""

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 1
    failure_exceptions: tuple = (ConnectionError, TimeoutError, OSError)


@dataclass
class CircuitBreakerMetrics:
    """Call counters reported by the cache health check."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.successful_calls / self.total_calls

    def as_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "rejected_calls": self.rejected_calls,
            "success_rate": self.success_rate,
            "circuit_opens": self.circuit_opens,
        }


@dataclass
class _BreakerState:
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    trial_successes: int = 0
    trial_in_flight: bool = False
    opened_at: Optional[float] = None
    last_failure_at: Optional[float] = None
    metrics: CircuitBreakerMetrics = field(default_factory=CircuitBreakerMetrics)


class RedisCircuitBreaker:
    """
    Circuit breaker for Redis coroutines.

    CLOSED counts consecutive connectivity failures and opens at the
    threshold. OPEN rejects calls until ``recovery_timeout`` has passed, then
    admits one trial call at a time in HALF_OPEN; a failed trial reopens the
    circuit and concurrent callers are rejected while a trial is running.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._status = _BreakerState()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._status.state

    @property
    def failure_count(self) -> int:
        return self._status.consecutive_failures

    @property
    def metrics(self) -> CircuitBreakerMetrics:
        return self._status.metrics

    def _move_to(self, new_state: CircuitState) -> None:
        previous = self._status.state
        self._status.state = new_state
        self._status.trial_successes = 0

        if new_state == CircuitState.OPEN:
            self._status.opened_at = self._clock()
            self._status.metrics.circuit_opens += 1
        elif new_state == CircuitState.CLOSED:
            self._status.consecutive_failures = 0
            self._status.opened_at = None

        logger.info(
            f"Circuit breaker {previous.value} -> {new_state.value}",
            extra={"failure_count": self._status.consecutive_failures},
        )

    async def _admit(self) -> bool:
        """Admit or reject a call. Returns True for a HALF_OPEN trial call."""
        async with self._lock:
            self._status.metrics.total_calls += 1
            if self._status.state == CircuitState.CLOSED:
                return False

            if self._status.state == CircuitState.OPEN:
                elapsed = self._clock() - (self._status.opened_at or 0.0)
                if elapsed >= self.config.recovery_timeout:
                    self._move_to(CircuitState.HALF_OPEN)

            if (
                self._status.state == CircuitState.HALF_OPEN
                and not self._status.trial_in_flight
            ):
                self._status.trial_in_flight = True
                return True

            self._status.metrics.rejected_calls += 1
            raise RedisCircuitBreakerOpenException()

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Await ``func(*args, **kwargs)`` under breaker protection.

        Raises:
            RedisCircuitBreakerOpenException: If the circuit is open
            Exception: Whatever ``func`` raises
        """
        is_trial = await self._admit()

        try:
            result = await func(*args, **kwargs)
        except self.config.failure_exceptions as e:
            await self._on_failure(e)
            raise
        else:
            await self._on_success()
            return result
        finally:
            if is_trial:
                self._status.trial_in_flight = False

    async def _on_success(self) -> None:
        async with self._lock:
            self._status.metrics.successful_calls += 1

            if self._status.state == CircuitState.HALF_OPEN:
                self._status.trial_successes += 1
                if self._status.trial_successes >= self.config.success_threshold:
                    self._move_to(CircuitState.CLOSED)
            else:
                self._status.consecutive_failures = 0

    async def _on_failure(self, error: Exception) -> None:
        async with self._lock:
            self._status.metrics.failed_calls += 1
            self._status.last_failure_at = self._clock()

            if self._status.state == CircuitState.HALF_OPEN:
                logger.warning(
                    "Circuit breaker trial call failed",
                    extra={"failure_type": type(error).__name__},
                )
                self._move_to(CircuitState.OPEN)
                return

            self._status.consecutive_failures += 1
            if (
                self._status.state == CircuitState.CLOSED
                and self._status.consecutive_failures >= self.config.failure_threshold
            ):
                logger.warning(
                    "Circuit breaker failure threshold reached",
                    extra={
                        "failure_count": self._status.consecutive_failures,
                        "threshold": self.config.failure_threshold,
                        "failure_type": type(error).__name__,
                    },
                )
                self._move_to(CircuitState.OPEN)

    def get_status(self) -> dict:
        """Breaker state for health reporting."""
        return {
            "state": self._status.state.value,
            "failure_count": self._status.consecutive_failures,
            "opened_at": self._status.opened_at,
            "last_failure_at": self._status.last_failure_at,
            "metrics": self._status.metrics.as_dict(),
        }

    async def reset(self) -> None:
        """Force the circuit closed and clear failure history."""
        async with self._lock:
            self._status = _BreakerState(metrics=self._status.metrics)
            logger.info("Circuit breaker manually reset")
