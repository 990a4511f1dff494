"""
Unit tests for Cache Manager Service.

Tests construction from settings and the health report that the readiness
endpoint relies on.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from catalog_api.domain.cache.value_objects import TTL
from catalog_api.infrastructure.repositories.cache_repository import (
    RedisListCacheStore,
)
from catalog_api.services.cache.cache_manager import CacheManager


class TestCacheManager:
    """Test CacheManager service."""

    def test_from_settings_uses_configured_policy(self, settings, fake_redis):
        """Test that TTL and page bounds come from settings."""
        manager = CacheManager.from_settings(fake_redis, settings)

        assert isinstance(manager.store, RedisListCacheStore)
        assert manager.store.scan_batch_size == settings.REDIS_SCAN_BATCH_SIZE
        assert manager.list_ttl == TTL.from_seconds(
            settings.PRODUCT_LIST_CACHE_TTL_SECONDS
        )
        assert manager.read_through.max_page_size == settings.PRODUCT_LIST_MAX_PAGE_SIZE
        assert manager.invalidation.store is manager.store

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, cache_manager):
        """Test health report with a reachable store."""
        status = await cache_manager.health_check()

        assert status["status"] == "healthy"
        assert status["circuit_breaker"]["state"] == "closed"
        assert "timestamp" in status

    @pytest.mark.asyncio
    async def test_health_check_degraded_when_unreachable(
        self, cache_manager, fake_redis
    ):
        """Test that an unreachable store is reported as degraded."""
        fake_redis.fail = True

        status = await cache_manager.health_check()

        assert status["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_health_check_without_circuit_breaker(self):
        """Test stores that expose no breaker."""
        store = MagicMock(spec=["ping"])
        store.ping = AsyncMock(return_value=True)
        manager = CacheManager(store, list_ttl=TTL.list_page())

        status = await manager.health_check()

        assert status["status"] == "healthy"
        assert "circuit_breaker" not in status
        store.ping.assert_awaited_once()
