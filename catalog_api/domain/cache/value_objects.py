"""
Cache Value Objects

Immutable value objects for the list cache domain.
Provides type safety and canonical forms for list queries and cache keys.
"""

import hashlib
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union
from urllib.parse import quote

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200

# Pages are addressed by a 32-bit signed integer on the wire
MAX_PAGE = 2_147_483_647

# Encoded search terms longer than this are replaced by their digest
MAX_ENCODED_SEARCH_LENGTH = 64

NAMESPACE_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,49}$")


class SortKey(str, Enum):
    """Supported list orderings."""

    DEFAULT = "default"  # Most recent first (identity descending)
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"

    @classmethod
    def parse(cls, value: Union["SortKey", str, None]) -> "SortKey":
        """Map raw input onto a sort key, falling back to DEFAULT."""
        if isinstance(value, SortKey):
            return value
        if not isinstance(value, str):
            return cls.DEFAULT
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.DEFAULT


@dataclass(frozen=True)
class ListQuerySpec:
    """
    Parameters of a paginated, filterable list query.

    Instances may hold raw, unvalidated input. Use ``normalized()`` to get
    the canonical form that keys and fetchers operate on.
    """

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    search: Optional[str] = None
    sort: Union[SortKey, str, None] = SortKey.DEFAULT

    def normalized(
        self,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> "ListQuerySpec":
        """
        Return the canonical copy of this query.

        Out-of-range paging values are clamped, the search term is trimmed
        and lower-cased (blank becomes None) and unknown sorts fall back to
        ``SortKey.DEFAULT``. Normalizing twice yields the same value.
        """
        page = min(max(self.page, 1), MAX_PAGE)

        if self.page_size < 1:
            page_size = default_page_size
        else:
            page_size = min(self.page_size, max_page_size)

        search = self.search.strip().lower() if self.search is not None else None
        if not search:
            search = None

        return replace(
            self,
            page=page,
            page_size=page_size,
            search=search,
            sort=SortKey.parse(self.sort),
        )

    @property
    def offset(self) -> int:
        """Row offset of the first item on this page."""
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Enforces key naming conventions and provides validation.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value:
            raise ValueError("Cache key cannot be empty")

        if len(self.value) > 250:
            raise ValueError("Cache key too long (max 250 characters)")

        # Validate no whitespace in key
        if any(char.isspace() for char in self.value):
            raise ValueError("Cache key cannot contain whitespace")

    @staticmethod
    def _validate_namespace(namespace: str) -> None:
        if not NAMESPACE_PATTERN.match(namespace):
            raise ValueError(f"Invalid cache namespace: {namespace!r}")

    @classmethod
    def list_prefix(cls, namespace: str) -> str:
        """Prefix shared by every cached list page of a namespace."""
        cls._validate_namespace(namespace)
        return f"{namespace}:list:"

    @classmethod
    def for_list_query(cls, namespace: str, spec: ListQuerySpec) -> "CacheKey":
        """Create the key for an already normalized list query."""
        prefix = cls.list_prefix(namespace)
        sort = SortKey.parse(spec.sort)

        if spec.search is None:
            search_segment = "search="
        else:
            encoded = quote(spec.search, safe="")
            if len(encoded) > MAX_ENCODED_SEARCH_LENGTH:
                digest = hashlib.sha256(spec.search.encode("utf-8")).hexdigest()
                search_segment = f"searchHash={digest}"
            else:
                search_segment = f"search={encoded}"

        return cls(
            f"{prefix}page={spec.page}:pageSize={spec.page_size}"
            f":{search_segment}:sort={sort.value}"
        )

    def has_prefix(self, prefix: str) -> bool:
        """Check whether this key belongs to a prefix group."""
        return self.value.startswith(prefix)

    def __str__(self) -> str:
        return self.value


def derive_list_key(namespace: str, spec: ListQuerySpec) -> CacheKey:
    """
    Derive the cache key for a list query.

    Args:
        namespace: Cache namespace of the list view (e.g. ``products``)
        spec: Raw or normalized query parameters

    Returns:
        Deterministic key; normalized-equal specs map to the same key
    """
    return CacheKey.for_list_query(namespace, spec.normalized())


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Provides type-safe TTL configuration with validation.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def from_seconds(cls, seconds: int) -> "TTL":
        """Create TTL from seconds."""
        return cls(seconds)

    @classmethod
    def minutes(cls, minutes: int) -> "TTL":
        """Create TTL from minutes."""
        return cls(minutes * 60)

    # Common TTL presets
    @classmethod
    def list_page(cls) -> "TTL":
        """List page TTL (1 minute)."""
        return cls.minutes(1)

    def __str__(self) -> str:
        return f"{self.seconds}s"
