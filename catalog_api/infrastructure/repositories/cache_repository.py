"""
Redis Cache Repository Implementation

Infrastructure implementation of the list cache store using Redis.
Stores enveloped JSON pages with SET EX and purges key groups with
cursor-based SCAN plus UNLINK.
"""

import logging
import re
import time
from typing import Any, Awaitable, Callable, Optional, Type

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...domain.cache.entities import (
    CachedPage,
    CachePayloadError,
    decode_cached_page,
)
from ...domain.cache.repository_interfaces import ListCacheStore
from ...domain.cache.value_objects import CacheKey, TTL
from ..redis.circuit_breaker import CircuitBreakerConfig, RedisCircuitBreaker
from ..redis.exceptions import (
    CacheSerializationException,
    CacheUnavailableException,
    RedisConnectionException,
    RedisOperationTimeoutException,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Exceptions that count against the circuit breaker
CONNECTIVITY_EXCEPTIONS = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    TimeoutError,
    OSError,
)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_match_pattern(prefix: str) -> str:
    """Escape glob metacharacters so prefix is matched literally by SCAN."""
    return _GLOB_SPECIAL.sub(r"\\\1", prefix)


class RedisListCacheStore(ListCacheStore):
    """Redis implementation of the list cache store."""

    def __init__(
        self,
        redis: Redis,
        circuit_breaker: Optional[RedisCircuitBreaker] = None,
        scan_batch_size: int = 500,
    ):
        self.redis = redis
        self.circuit_breaker = circuit_breaker or RedisCircuitBreaker(
            CircuitBreakerConfig(failure_exceptions=CONNECTIVITY_EXCEPTIONS)
        )
        self.scan_batch_size = scan_batch_size

    async def _execute(
        self,
        operation: str,
        func: Callable[..., Awaitable[Any]],
        *args,
        key: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """Run a Redis command through the breaker, mapping failures."""
        try:
            return await self.circuit_breaker.call(func, *args, **kwargs)
        except CacheUnavailableException:
            raise
        except (RedisTimeoutError, TimeoutError) as e:
            raise RedisOperationTimeoutException(
                operation=operation, key=key, original_error=e
            ) from e
        except (RedisConnectionError, OSError) as e:
            raise RedisConnectionException(
                message=f"Redis connection failed during {operation}",
                original_error=e,
            ) from e
        except RedisError as e:
            raise CacheUnavailableException(
                message=f"Redis {operation} failed",
                details={"operation": operation, "key": key},
                original_error=e,
            ) from e

    async def get(
        self, key: CacheKey, page_type: Type[CachedPage]
    ) -> Optional[CachedPage]:
        """Get cached page; undecodable payloads are reported as a miss."""
        with tracer.start_as_current_span("cache.get") as span:
            span.set_attribute("cache.key", key.value)
            start_time = time.time()

            try:
                raw = await self._execute("get", self.redis.get, key.value, key=key.value)
            except CacheUnavailableException as e:
                span.set_status(Status(StatusCode.ERROR, e.message))
                raise

            if raw is None:
                span.set_attribute("cache.hit", False)
                return None

            try:
                page = decode_cached_page(raw, page_type)
            except CachePayloadError as e:
                span.set_attribute("cache.hit", False)
                span.set_attribute("cache.payload_rejected", True)
                logger.warning(
                    f"Discarding unreadable cache payload: {e}",
                    extra={"key": key.value},
                )
                return None

            span.set_attribute("cache.hit", True)
            logger.debug(
                f"Cache hit: {key.value}",
                extra={"execution_time_ms": (time.time() - start_time) * 1000},
            )
            return page

    async def set(self, key: CacheKey, page: CachedPage, ttl: TTL) -> None:
        """Store page under key with expiry in a single SET EX command."""
        with tracer.start_as_current_span("cache.set") as span:
            span.set_attribute("cache.key", key.value)
            span.set_attribute("cache.ttl_seconds", ttl.seconds)

            try:
                value = page.to_cache_value()
            except (TypeError, ValueError) as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise CacheSerializationException(key.value, original_error=e) from e

            span.set_attribute("cache.size_bytes", len(value))

            try:
                await self._execute(
                    "set", self.redis.set, key.value, value, ex=ttl.seconds, key=key.value
                )
            except CacheUnavailableException as e:
                span.set_status(Status(StatusCode.ERROR, e.message))
                raise

            logger.debug(
                f"Cached page: {key.value}",
                extra={"ttl_seconds": ttl.seconds, "size_bytes": len(value)},
            )

    async def delete(self, key: CacheKey) -> bool:
        """Delete a single cached page."""
        removed = await self._execute(
            "delete", self.redis.unlink, key.value, key=key.value
        )
        return bool(removed)

    async def delete_by_prefix(self, prefix: str) -> int:
        """
        Delete every key that starts with prefix.

        Keys are collected with cursor-based SCAN and each batch is removed
        with UNLINK. Keys written while the sweep runs may survive it.

        Returns:
            Number of keys removed
        """
        if not prefix:
            raise ValueError("Prefix cannot be empty")

        pattern = f"{escape_match_pattern(prefix)}*"

        with tracer.start_as_current_span("cache.delete_by_prefix") as span:
            span.set_attribute("cache.prefix", prefix)
            start_time = time.time()
            removed = 0

            try:
                cursor = 0
                while True:
                    cursor, keys = await self._execute(
                        "scan",
                        self.redis.scan,
                        cursor,
                        match=pattern,
                        count=self.scan_batch_size,
                    )
                    if keys:
                        removed += await self._execute(
                            "unlink", self.redis.unlink, *keys
                        )
                    if int(cursor) == 0:
                        break
            except CacheUnavailableException as e:
                span.set_status(Status(StatusCode.ERROR, e.message))
                raise

            span.set_attribute("cache.removed", removed)
            logger.debug(
                f"Removed {removed} keys with prefix {prefix}",
                extra={"execution_time_ms": (time.time() - start_time) * 1000},
            )
            return removed

    async def ping(self) -> bool:
        """Check Redis liveness without raising."""
        try:
            return bool(await self._execute("ping", self.redis.ping))
        except CacheUnavailableException as e:
            logger.warning(
                "Redis ping failed", extra={"error_code": e.error_code}
            )
            return False
