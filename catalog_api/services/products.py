"""
Product Catalog Service

Application service for product reads and writes. Owns the unit of work:
every mutation is committed before the list caches are invalidated, so a
reader that repopulates the cache after the sweep sees the new row.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..constants import MAX_PRODUCT_ID, PRODUCTS_NAMESPACE, get_current_timestamp
from ..core.exceptions import CatalogValidationException, ProductNotFoundException
from ..domain.cache.value_objects import ListQuerySpec
from ..models import Product
from ..repositories.product import ProductPage, ProductRepository
from .cache.cache_manager import CacheManager

logger = structlog.get_logger()


def _require_text(value: str, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise CatalogValidationException(f"{field} is required", field=field)
    return cleaned


def _require_non_negative(value, field: str):
    if value is None or value < 0:
        raise CatalogValidationException(f"{field} must be >= 0", field=field)
    return value


def _is_storable_id(product_id: int) -> bool:
    return 1 <= product_id <= MAX_PRODUCT_ID


class ProductCatalogService:
    """Product use cases on top of the repository and the list cache."""

    def __init__(
        self,
        session: AsyncSession,
        cache_manager: CacheManager,
        repository: Optional[ProductRepository] = None,
    ):
        self.session = session
        self.cache_manager = cache_manager
        self.repository = repository or ProductRepository(session)

    async def list_products(self, spec: ListQuerySpec) -> ProductPage:
        """
        Return one page of the product list through the read-through cache.

        Args:
            spec: Raw list query; normalized before use

        Returns:
            Page of product list items
        """
        return await self.cache_manager.read_through.get_page(
            PRODUCTS_NAMESPACE,
            spec,
            self.cache_manager.list_ttl,
            self.repository.list_page,
            ProductPage,
        )

    async def get_product(self, product_id: int) -> Product:
        """
        Get a single product. Bypasses the cache.

        Raises:
            ProductNotFoundException: If no product has this id
        """
        if not _is_storable_id(product_id):
            raise ProductNotFoundException(product_id)

        product = await self.repository.get(product_id)
        if product is None:
            raise ProductNotFoundException(product_id)
        return product

    async def create_product(
        self, name: str, type: str, price: Decimal, quantity: int
    ) -> Product:
        """
        Create a product and invalidate cached list pages.

        Raises:
            CatalogValidationException: If a field violates catalog rules
        """
        product = Product(
            name=_require_text(name, "name"),
            type=_require_text(type, "type"),
            price=_require_non_negative(price, "price"),
            quantity=_require_non_negative(quantity, "quantity"),
            is_active=True,
            created_utc=get_current_timestamp(),
        )

        product = await self.repository.create(product)
        await self.session.commit()

        logger.info("Product created", product_id=product.id, name=product.name)

        await self.cache_manager.invalidation.invalidate_list_caches(
            PRODUCTS_NAMESPACE
        )
        return product

    async def update_product(
        self,
        product_id: int,
        name: str,
        type: str,
        price: Decimal,
        quantity: int,
        is_active: bool,
    ) -> Product:
        """
        Replace the mutable fields of a product and invalidate list pages.

        Raises:
            ProductNotFoundException: If no product has this id
            CatalogValidationException: If a field violates catalog rules
        """
        product = await self.get_product(product_id)

        product.name = _require_text(name, "name")
        product.type = _require_text(type, "type")
        product.price = _require_non_negative(price, "price")
        product.quantity = _require_non_negative(quantity, "quantity")
        product.is_active = is_active

        await self.repository.update(product)
        await self.session.commit()

        logger.info("Product updated", product_id=product_id)

        await self.cache_manager.invalidation.invalidate_list_caches(
            PRODUCTS_NAMESPACE
        )
        return product

    async def delete_product(self, product_id: int) -> None:
        """
        Delete a product and invalidate list pages.

        Raises:
            ProductNotFoundException: If no product has this id
        """
        if not _is_storable_id(product_id):
            raise ProductNotFoundException(product_id)

        deleted = await self.repository.delete(product_id)
        if not deleted:
            raise ProductNotFoundException(product_id)

        await self.session.commit()

        logger.info("Product deleted", product_id=product_id)

        await self.cache_manager.invalidation.invalidate_list_caches(
            PRODUCTS_NAMESPACE
        )
