"""
Cache Manager Service

High-level cache management service that wires the Redis list cache store
to the read-through and invalidation domain services.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from opentelemetry import trace
from redis.asyncio import Redis

from ...core.config import Settings
from ...domain.cache.domain_services import (
    ListCacheInvalidationService,
    ReadThroughQueryService,
)
from ...domain.cache.repository_interfaces import ListCacheStore
from ...domain.cache.value_objects import TTL
from ...infrastructure.redis.circuit_breaker import RedisCircuitBreaker
from ...infrastructure.repositories.cache_repository import RedisListCacheStore
from ...monitoring.cache_metrics import ListCacheMetrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CacheManager:
    """
    High-level cache management service.

    Provides a single entry point for list page reads, write invalidation
    and cache health reporting. One instance is created per application.
    """

    def __init__(
        self,
        store: ListCacheStore,
        list_ttl: TTL,
        default_page_size: int = 20,
        max_page_size: int = 200,
        metrics: Optional[ListCacheMetrics] = None,
    ):
        self.store = store
        self.list_ttl = list_ttl
        self.read_through = ReadThroughQueryService(
            store,
            default_page_size=default_page_size,
            max_page_size=max_page_size,
            metrics=metrics,
        )
        self.invalidation = ListCacheInvalidationService(store, metrics=metrics)

    @classmethod
    def from_settings(
        cls,
        redis: Redis,
        settings: Settings,
        circuit_breaker: Optional[RedisCircuitBreaker] = None,
    ) -> "CacheManager":
        """Build the manager around a Redis client using configured policy."""
        store = RedisListCacheStore(
            redis,
            circuit_breaker=circuit_breaker,
            scan_batch_size=settings.REDIS_SCAN_BATCH_SIZE,
        )
        logger.info(
            "Cache manager initialized",
            extra={
                "list_ttl_seconds": settings.PRODUCT_LIST_CACHE_TTL_SECONDS,
                "max_page_size": settings.PRODUCT_LIST_MAX_PAGE_SIZE,
            },
        )
        return cls(
            store,
            list_ttl=TTL.from_seconds(settings.PRODUCT_LIST_CACHE_TTL_SECONDS),
            default_page_size=settings.PRODUCT_LIST_DEFAULT_PAGE_SIZE,
            max_page_size=settings.PRODUCT_LIST_MAX_PAGE_SIZE,
        )

    async def health_check(self) -> Dict[str, Any]:
        """
        Report cache health.

        The cache is optional for correctness, so an unreachable store is
        reported as degraded rather than unhealthy.
        """
        with tracer.start_as_current_span("cache_manager.health_check") as span:
            reachable = await self.store.ping()
            span.set_attribute("cache.reachable", reachable)

            status: Dict[str, Any] = {
                "status": "healthy" if reachable else "degraded",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

            circuit_breaker = getattr(self.store, "circuit_breaker", None)
            if circuit_breaker is not None:
                status["circuit_breaker"] = circuit_breaker.get_status()

            return status
