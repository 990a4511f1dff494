"""
Redis Infrastructure Module

Redis client construction, circuit breaker protection and the exception
hierarchy used by the list cache store.
"""

from .connection_factory import RedisConnectionFactory
from .circuit_breaker import (
    RedisCircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    CircuitBreakerMetrics,
)
from .exceptions import (
    RedisException,
    CacheUnavailableException,
    RedisConnectionException,
    RedisOperationTimeoutException,
    RedisCircuitBreakerOpenException,
    RedisConfigurationException,
    CacheSerializationException,
)

__all__ = [
    # Connection management
    "RedisConnectionFactory",
    # Circuit breaker
    "RedisCircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitBreakerMetrics",
    # Exceptions
    "RedisException",
    "CacheUnavailableException",
    "RedisConnectionException",
    "RedisOperationTimeoutException",
    "RedisCircuitBreakerOpenException",
    "RedisConfigurationException",
    "CacheSerializationException",
]
