"""
Unit tests for the Redis circuit breaker state machine.
"""

import asyncio

import pytest

from catalog_api.infrastructure.redis.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    RedisCircuitBreaker,
)
from catalog_api.infrastructure.redis.exceptions import (
    RedisCircuitBreakerOpenException,
)


async def _fail():
    raise ConnectionError("down")


async def _ok():
    return "ok"


async def _bad_value():
    raise ValueError("not a connectivity problem")


class TestRedisCircuitBreaker:
    """Test breaker transitions."""

    async def test_opens_after_threshold(self):
        breaker = RedisCircuitBreaker(CircuitBreakerConfig(failure_threshold=3))

        for _ in range(3):
            with pytest.raises(ConnectionError):
                await breaker.call(_fail)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(RedisCircuitBreakerOpenException):
            await breaker.call(_ok)
        assert breaker.metrics.rejected_calls == 1

    async def test_success_resets_failure_count(self):
        breaker = RedisCircuitBreaker(CircuitBreakerConfig(failure_threshold=2))

        with pytest.raises(ConnectionError):
            await breaker.call(_fail)
        assert await breaker.call(_ok) == "ok"

        assert breaker.failure_count == 0
        assert breaker.state == CircuitState.CLOSED

    async def test_half_open_trial_closes_on_success(self):
        breaker = RedisCircuitBreaker(
            CircuitBreakerConfig(failure_threshold=1, recovery_timeout=0.0)
        )
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)
        assert breaker.state == CircuitState.OPEN

        assert await breaker.call(_ok) == "ok"

        assert breaker.state == CircuitState.CLOSED

    async def test_half_open_trial_reopens_on_failure(self):
        breaker = RedisCircuitBreaker(
            CircuitBreakerConfig(failure_threshold=1, recovery_timeout=0.0)
        )
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        assert breaker.state == CircuitState.OPEN
        assert breaker.metrics.circuit_opens == 2

    async def test_half_open_admits_one_call_at_a_time(self):
        breaker = RedisCircuitBreaker(
            CircuitBreakerConfig(failure_threshold=1, recovery_timeout=0.0)
        )
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)
        release = asyncio.Event()

        async def _slow_ok():
            await release.wait()
            return "ok"

        trial = asyncio.create_task(breaker.call(_slow_ok))
        await asyncio.sleep(0)
        assert breaker.state == CircuitState.HALF_OPEN

        with pytest.raises(RedisCircuitBreakerOpenException):
            await breaker.call(_ok)

        release.set()
        assert await trial == "ok"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.metrics.rejected_calls == 1
        assert await breaker.call(_ok) == "ok"

    async def test_half_open_admits_next_call_after_unmonitored_error(self):
        breaker = RedisCircuitBreaker(
            CircuitBreakerConfig(failure_threshold=1, recovery_timeout=0.0)
        )
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        with pytest.raises(ValueError):
            await breaker.call(_bad_value)
        assert breaker.state == CircuitState.HALF_OPEN

        assert await breaker.call(_ok) == "ok"
        assert breaker.state == CircuitState.CLOSED

    async def test_unmonitored_errors_do_not_count(self):
        breaker = RedisCircuitBreaker(CircuitBreakerConfig(failure_threshold=1))

        with pytest.raises(ValueError):
            await breaker.call(_bad_value)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    async def test_reset(self):
        breaker = RedisCircuitBreaker(CircuitBreakerConfig(failure_threshold=1))
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        await breaker.reset()

        status = breaker.get_status()
        assert status["state"] == "closed"
        assert status["failure_count"] == 0

    async def test_recovery_timeout_uses_clock(self):
        now = [100.0]
        breaker = RedisCircuitBreaker(
            CircuitBreakerConfig(failure_threshold=1, recovery_timeout=30.0),
            clock=lambda: now[0],
        )
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        now[0] += 29.0
        with pytest.raises(RedisCircuitBreakerOpenException):
            await breaker.call(_ok)

        now[0] += 1.0
        assert await breaker.call(_ok) == "ok"
        assert breaker.state == CircuitState.CLOSED
