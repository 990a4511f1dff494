"""
Cache Domain Services

Business logic services for the list cache.
Implements read-through lookups and write-triggered prefix invalidation
on top of a ListCacheStore.
"""

import logging
import time
from typing import Awaitable, Callable, Optional, Type

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ...infrastructure.redis.exceptions import (
    CacheSerializationException,
    CacheUnavailableException,
)
from ...monitoring.cache_metrics import ListCacheMetrics, list_cache_metrics
from .entities import CachedPage
from .repository_interfaces import ListCacheStore
from .value_objects import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TTL,
    CacheKey,
    ListQuerySpec,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PageFetcher = Callable[[ListQuerySpec], Awaitable[CachedPage]]


class ReadThroughQueryService:
    """
    Domain service for cache-aside reads of list pages.

    The store is treated as an optimization only: when it is unreachable
    the page is computed by the fetcher and returned as if no cache existed.
    """

    def __init__(
        self,
        store: ListCacheStore,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        metrics: Optional[ListCacheMetrics] = None,
    ):
        self.store = store
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.metrics = metrics or list_cache_metrics

    async def get_page(
        self,
        namespace: str,
        spec: ListQuerySpec,
        ttl: TTL,
        fetcher: PageFetcher,
        page_type: Type[CachedPage],
    ) -> CachedPage:
        """
        Return a page from cache, or compute and cache it.

        Args:
            namespace: Cache namespace of the list view
            spec: Raw list query parameters
            ttl: Staleness window for a freshly computed page
            fetcher: Computes the page from the system of record
            page_type: Parametrized page model used to decode cached values

        Returns:
            The cached or freshly computed page

        Raises:
            Exception: Whatever the fetcher raises; cache errors never escape
        """
        normalized = spec.normalized(self.default_page_size, self.max_page_size)
        key = CacheKey.for_list_query(namespace, normalized)

        with tracer.start_as_current_span("cache.read_through") as span:
            span.set_attribute("cache.namespace", namespace)
            span.set_attribute("cache.key", key.value)

            cached = await self._lookup(namespace, key, page_type)
            if cached is not None:
                span.set_attribute("cache.hit", True)
                self.metrics.hits.labels(namespace=namespace).inc()
                return cached

            span.set_attribute("cache.hit", False)
            self.metrics.misses.labels(namespace=namespace).inc()

            start_time = time.perf_counter()
            try:
                page = await fetcher(normalized)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise
            finally:
                self.metrics.fetch_duration.labels(namespace=namespace).observe(
                    time.perf_counter() - start_time
                )

            await self._populate(namespace, key, page, ttl)
            return page

    async def _lookup(
        self, namespace: str, key: CacheKey, page_type: Type[CachedPage]
    ) -> Optional[CachedPage]:
        try:
            return await self.store.get(key, page_type)
        except CacheUnavailableException as e:
            self.metrics.unavailable.labels(namespace=namespace, operation="get").inc()
            logger.warning(
                "List cache unavailable on read, computing page directly",
                extra={"key": key.value, "error_code": e.error_code},
            )
            return None

    async def _populate(
        self, namespace: str, key: CacheKey, page: CachedPage, ttl: TTL
    ) -> None:
        try:
            await self.store.set(key, page, ttl)
        except CacheUnavailableException as e:
            self.metrics.unavailable.labels(namespace=namespace, operation="set").inc()
            self.metrics.populate_failures.labels(namespace=namespace).inc()
            logger.warning(
                "List cache unavailable on populate",
                extra={"key": key.value, "error_code": e.error_code},
            )
        except CacheSerializationException as e:
            self.metrics.populate_failures.labels(namespace=namespace).inc()
            logger.error(
                f"Failed to serialize list page for cache: {e.message}",
                extra={"key": key.value, "details": e.details},
            )


class ListCacheInvalidationService:
    """
    Domain service for write-triggered invalidation.

    Purges every cached variant of a list view by key prefix. Intended to be
    called after the mutating transaction has committed.
    """

    def __init__(
        self, store: ListCacheStore, metrics: Optional[ListCacheMetrics] = None
    ):
        self.store = store
        self.metrics = metrics or list_cache_metrics

    async def invalidate_list_caches(self, namespace: str) -> int:
        """
        Invalidate all cached pages of a list view.

        Args:
            namespace: Cache namespace of the list view

        Returns:
            Number of keys removed; 0 when the sweep failed
        """
        prefix = CacheKey.list_prefix(namespace)

        with tracer.start_as_current_span("cache.invalidate_list") as span:
            span.set_attribute("cache.namespace", namespace)
            span.set_attribute("cache.prefix", prefix)

            try:
                removed = await self.store.delete_by_prefix(prefix)
            except Exception as e:
                # The write already committed; TTL bounds the staleness
                self.metrics.invalidation_failures.labels(namespace=namespace).inc()
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(
                    f"Failed to invalidate list caches for {namespace}: {e}",
                    extra={"prefix": prefix, "error_type": type(e).__name__},
                )
                return 0

            self.metrics.invalidations.labels(namespace=namespace).inc()
            span.set_attribute("invalidated_count", removed)
            logger.info(
                f"Invalidated {removed} cached list pages for {namespace}",
                extra={"prefix": prefix, "count": removed},
            )
            return removed
