"""
Cache Domain Entities

Payload types stored in the list cache and the versioned envelope
they are wrapped in.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Generic, List, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

PAYLOAD_SCHEMA = "cached_page"
PAYLOAD_VERSION = 1

T = TypeVar("T")


class CachePayloadError(ValueError):
    """Raised when a stored payload cannot be turned back into a page."""


class ProductListItem(BaseModel):
    """Projection of a product as shown in list views."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )

    id: int
    name: str
    type: str
    price: Decimal
    quantity: int
    created_utc: datetime


class CachedPage(BaseModel, Generic[T]):
    """
    One page of list results together with the total match count.

    Serialized with camelCase field names so the same shape is used in the
    cache and on the HTTP surface. Never mutated after creation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    items: List[T] = Field(default_factory=list)
    total_count: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)

    @classmethod
    def empty(cls, page: int, page_size: int) -> "CachedPage[T]":
        """Page with no items and a zero total."""
        return cls(items=[], total_count=0, page=page, page_size=page_size)

    def to_envelope(self) -> Dict[str, Any]:
        """Wrap the page in the versioned cache envelope."""
        return {
            "schema": PAYLOAD_SCHEMA,
            "version": PAYLOAD_VERSION,
            "payload": self.model_dump(mode="json", by_alias=True),
        }

    def to_cache_value(self) -> str:
        """Serialize the enveloped page to a JSON string."""
        return json.dumps(self.to_envelope(), separators=(",", ":"))


def decode_cached_page(raw: Any, page_type: Type[CachedPage]) -> CachedPage:
    """
    Decode a raw cache value into a typed page.

    Args:
        raw: Value read from the store (``str`` or ``bytes``)
        page_type: Parametrized page model, e.g. ``CachedPage[ProductListItem]``

    Returns:
        The validated page

    Raises:
        CachePayloadError: If the value is not JSON, carries an unknown
            schema or version, or fails payload validation
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CachePayloadError("Cache payload is not valid UTF-8") from e

    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise CachePayloadError("Cache payload is not valid JSON") from e

    if not isinstance(envelope, dict):
        raise CachePayloadError("Cache payload is not an object")

    schema = envelope.get("schema")
    version = envelope.get("version")
    if schema != PAYLOAD_SCHEMA or version != PAYLOAD_VERSION:
        raise CachePayloadError(
            f"Unsupported cache payload schema {schema!r} version {version!r}"
        )

    try:
        return page_type.model_validate(envelope.get("payload"))
    except ValidationError as e:
        raise CachePayloadError("Cache payload failed validation") from e
