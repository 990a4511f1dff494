"""
Unit tests for read-through list caching and prefix invalidation.
"""

import pytest

from catalog_api.domain.cache.domain_services import (
    ListCacheInvalidationService,
    ReadThroughQueryService,
)
from catalog_api.domain.cache.entities import CachedPage
from catalog_api.domain.cache.repository_interfaces import ListCacheStore
from catalog_api.domain.cache.value_objects import (
    CacheKey,
    ListQuerySpec,
    TTL,
    derive_list_key,
)
from catalog_api.infrastructure.redis.exceptions import (
    CacheSerializationException,
)
from catalog_api.repositories.product import ProductPage

NAMESPACE = "products"


class CountingFetcher:
    """Page fetcher that records every call."""

    def __init__(self, repository):
        self.repository = repository
        self.specs = []

    async def __call__(self, spec):
        self.specs.append(spec)
        return await self.repository.list_page(spec)


class UnserializableStore(ListCacheStore):
    """Store whose writes always fail to serialize."""

    async def get(self, key, page_type):
        return None

    async def set(self, key, page, ttl):
        raise CacheSerializationException(key.value)

    async def delete(self, key):
        return False

    async def delete_by_prefix(self, prefix):
        raise RuntimeError("unexpected")

    async def ping(self):
        return True


def _sample(cache_metrics, name, **labels):
    value = cache_metrics.registry.get_sample_value(name, labels or None)
    return value or 0.0


@pytest.fixture
def read_through(cache_store, cache_metrics):
    return ReadThroughQueryService(cache_store, metrics=cache_metrics)


@pytest.fixture
def fetcher(product_repository):
    product_repository.add("Blue Widget", "tools", "9.99")
    product_repository.add("Red Gadget", "toys", "4.50")
    return CountingFetcher(product_repository)


class TestReadThroughQueryService:
    """Test cache-aside page reads."""

    async def test_miss_fetches_and_populates(
        self, read_through, fetcher, fake_redis, cache_metrics
    ):
        page = await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )

        assert page.total_count == 2
        assert len(fetcher.specs) == 1
        key = derive_list_key(NAMESPACE, ListQuerySpec())
        assert key.value in fake_redis.data
        assert _sample(cache_metrics, "catalog_list_cache_misses_total", namespace=NAMESPACE) == 1

    async def test_hit_skips_fetcher(self, read_through, fetcher, cache_metrics):
        first = await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )
        second = await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )

        assert second == first
        assert len(fetcher.specs) == 1
        assert _sample(cache_metrics, "catalog_list_cache_hits_total", namespace=NAMESPACE) == 1

    async def test_fetcher_receives_normalized_spec(self, read_through, fetcher):
        await read_through.get_page(
            NAMESPACE,
            ListQuerySpec(page=0, page_size=5000, search="  BLUE ", sort="Price_Desc"),
            TTL.list_page(),
            fetcher,
            ProductPage,
        )

        spec = fetcher.specs[0]
        assert (spec.page, spec.page_size, spec.search, spec.sort.value) == (
            1,
            200,
            "blue",
            "price_desc",
        )

    async def test_blank_and_absent_search_share_entry(self, read_through, fetcher):
        await read_through.get_page(
            NAMESPACE, ListQuerySpec(search=None), TTL.list_page(), fetcher, ProductPage
        )
        await read_through.get_page(
            NAMESPACE, ListQuerySpec(search="   "), TTL.list_page(), fetcher, ProductPage
        )

        assert len(fetcher.specs) == 1

    async def test_cache_unavailable_falls_back_to_fetcher(
        self, read_through, fetcher, fake_redis, cache_metrics
    ):
        fake_redis.fail = True

        page = await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )

        assert page.total_count == 2
        assert (
            _sample(
                cache_metrics,
                "catalog_list_cache_unavailable_total",
                namespace=NAMESPACE,
                operation="get",
            )
            == 1
        )
        assert (
            _sample(
                cache_metrics,
                "catalog_list_cache_populate_failures_total",
                namespace=NAMESPACE,
            )
            == 1
        )

    async def test_unavailable_cache_fetches_every_time(
        self, read_through, fetcher, fake_redis
    ):
        fake_redis.fail = True

        for _ in range(3):
            await read_through.get_page(
                NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
            )

        assert len(fetcher.specs) == 3

    async def test_serialization_failure_still_returns_page(
        self, fetcher, cache_metrics
    ):
        service = ReadThroughQueryService(UnserializableStore(), metrics=cache_metrics)

        page = await service.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )

        assert page.total_count == 2
        assert (
            _sample(
                cache_metrics,
                "catalog_list_cache_populate_failures_total",
                namespace=NAMESPACE,
            )
            == 1
        )

    async def test_corrupt_cached_value_is_recomputed(
        self, read_through, fetcher, fake_redis
    ):
        key = derive_list_key(NAMESPACE, ListQuerySpec())
        fake_redis.data[key.value] = "[" * 100_000 + "]" * 100_000

        page = await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )

        assert page.total_count == 2
        assert len(fetcher.specs) == 1
        assert fake_redis.data[key.value].startswith('{"schema":"cached_page"')

    async def test_fetcher_error_propagates_and_nothing_is_cached(
        self, read_through, fetcher, product_repository, fake_redis
    ):
        product_repository.fail_with = RuntimeError("database down")

        with pytest.raises(RuntimeError, match="database down"):
            await read_through.get_page(
                NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
            )

        assert fake_redis.data == {}

    async def test_expired_entry_is_recomputed(self, read_through, fetcher, fake_redis):
        await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.from_seconds(10), fetcher, ProductPage
        )
        fake_redis.advance(10)
        await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.from_seconds(10), fetcher, ProductPage
        )

        assert len(fetcher.specs) == 2

    async def test_empty_result_is_cached(self, read_through, cache_metrics):
        calls = []

        async def empty_fetcher(spec):
            calls.append(spec)
            return ProductPage.empty(spec.page, spec.page_size)

        for _ in range(2):
            page = await read_through.get_page(
                NAMESPACE,
                ListQuerySpec(search="nothing"),
                TTL.list_page(),
                empty_fetcher,
                ProductPage,
            )

        assert page.items == []
        assert page.total_count == 0
        assert len(calls) == 1


class TestListCacheInvalidationService:
    """Test write-triggered invalidation."""

    async def test_removes_all_list_pages(
        self, cache_store, read_through, fetcher, fake_redis, cache_metrics
    ):
        for page in (1, 2, 3):
            await read_through.get_page(
                NAMESPACE, ListQuerySpec(page=page), TTL.list_page(), fetcher, ProductPage
            )
        fake_redis.data["products:item:1"] = "other"
        service = ListCacheInvalidationService(cache_store, metrics=cache_metrics)

        removed = await service.invalidate_list_caches(NAMESPACE)

        assert removed == 3
        assert list(fake_redis.data) == ["products:item:1"]
        assert (
            _sample(
                cache_metrics,
                "catalog_list_cache_invalidations_total",
                namespace=NAMESPACE,
            )
            == 1
        )

    async def test_idempotent(self, cache_store, cache_metrics):
        service = ListCacheInvalidationService(cache_store, metrics=cache_metrics)

        assert await service.invalidate_list_caches(NAMESPACE) == 0
        assert await service.invalidate_list_caches(NAMESPACE) == 0

    async def test_failure_is_swallowed(self, cache_store, fake_redis, cache_metrics):
        fake_redis.fail = True
        service = ListCacheInvalidationService(cache_store, metrics=cache_metrics)

        assert await service.invalidate_list_caches(NAMESPACE) == 0
        assert (
            _sample(
                cache_metrics,
                "catalog_list_cache_invalidation_failures_total",
                namespace=NAMESPACE,
            )
            == 1
        )

    async def test_unexpected_store_error_is_swallowed(self, cache_metrics):
        service = ListCacheInvalidationService(
            UnserializableStore(), metrics=cache_metrics
        )

        assert await service.invalidate_list_caches(NAMESPACE) == 0

    async def test_next_read_after_invalidation_is_fresh(
        self, cache_store, read_through, fetcher, product_repository, cache_metrics
    ):
        service = ListCacheInvalidationService(cache_store, metrics=cache_metrics)
        before = await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )
        product_repository.add("Green Gizmo", "tools", "1.00")

        await service.invalidate_list_caches(NAMESPACE)
        after = await read_through.get_page(
            NAMESPACE, ListQuerySpec(), TTL.list_page(), fetcher, ProductPage
        )

        assert after.total_count == before.total_count + 1

    async def test_invalid_namespace_rejected(self, cache_store, cache_metrics):
        service = ListCacheInvalidationService(cache_store, metrics=cache_metrics)

        with pytest.raises(ValueError):
            await service.invalidate_list_caches("Bad Namespace")


def test_cache_key_prefix_of_derived_keys():
    key = derive_list_key(NAMESPACE, ListQuerySpec(page=4))
    assert key.has_prefix(CacheKey.list_prefix(NAMESPACE))
    assert isinstance(ProductPage.empty(1, 20), CachedPage)
