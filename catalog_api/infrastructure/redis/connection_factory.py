"""
Redis Connection Factory

Builds the pooled Redis client and the circuit breaker that guards it.
The client is created once per application and handed explicitly to the
cache store; nothing here is a module-level singleton.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...core.config import Settings
from .circuit_breaker import CircuitBreakerConfig, RedisCircuitBreaker
from .exceptions import RedisConfigurationException

logger = logging.getLogger(__name__)


class RedisConnectionFactory:
    """
    Factory for the application's Redis client.

    Creating the client does not contact the server. Connectivity problems
    surface on first use and are handled by the cache store.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None

    def create_client(self) -> Redis:
        """Create (or return the already created) pooled Redis client."""
        if self._client is not None:
            return self._client

        try:
            self._pool = ConnectionPool.from_url(
                self.settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.settings.REDIS_CONNECTION_TIMEOUT,
                socket_timeout=self.settings.REDIS_OPERATION_TIMEOUT,
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
            )
        except ValueError as e:
            raise RedisConfigurationException(
                message=f"Invalid Redis configuration: {e}",
                config_key="REDIS_URL",
                original_error=e,
            ) from e

        self._client = Redis(connection_pool=self._pool)

        parsed_url = urlparse(self.settings.REDIS_URL)
        logger.info(
            "Redis client created",
            extra={
                "host": parsed_url.hostname,
                "port": parsed_url.port,
                "max_connections": self.settings.REDIS_MAX_CONNECTIONS,
            },
        )
        return self._client

    def create_circuit_breaker(self) -> RedisCircuitBreaker:
        """Circuit breaker configured from settings."""
        return RedisCircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=self.settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                recovery_timeout=float(self.settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT),
                failure_exceptions=(
                    RedisConnectionError,
                    RedisTimeoutError,
                    ConnectionError,
                    TimeoutError,
                    OSError,
                ),
            )
        )

    async def close(self) -> None:
        """Close the client and disconnect the pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        logger.info("Redis connections closed")
