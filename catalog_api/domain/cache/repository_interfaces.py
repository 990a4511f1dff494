"""
Cache Repository Interfaces

Abstract repository interfaces following DDD Repository pattern.
Defines contracts for cache persistence implementations.
"""

from abc import ABC, abstractmethod
from typing import Optional, Type

from .entities import CachedPage
from .value_objects import CacheKey, TTL


class ListCacheStore(ABC):
    """
    Abstract store for cached list pages.

    Implementations raise ``CacheUnavailableException`` when the backing
    store cannot be reached. A stored value that cannot be decoded is
    reported as a miss, not as an error.
    """

    @abstractmethod
    async def get(
        self, key: CacheKey, page_type: Type[CachedPage]
    ) -> Optional[CachedPage]:
        """Fetch a cached page, or None on a miss."""
        pass

    @abstractmethod
    async def set(self, key: CacheKey, page: CachedPage, ttl: TTL) -> None:
        """Store a page under key, replacing any prior value."""
        pass

    @abstractmethod
    async def delete(self, key: CacheKey) -> bool:
        """Delete a single key. Returns True if it existed."""
        pass

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns the number removed."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check that the backing store answers."""
        pass
