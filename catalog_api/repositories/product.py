"""
Product Repository

Specialized repository for the Product model.
Computes list pages for the read-through cache: filtering, ordering and
offset paging all happen in SQL.
"""

from typing import Tuple

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..domain.cache.entities import CachedPage, ProductListItem
from ..domain.cache.value_objects import ListQuerySpec, SortKey
from ..models import Product
from .base import BaseRepository

logger = structlog.get_logger()

LIKE_ESCAPE = "\\"

ProductPage = CachedPage[ProductListItem]


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term is matched literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def build_list_statements(spec: ListQuerySpec) -> Tuple[Select, Select]:
    """
    Build the count and page statements for a normalized list query.

    Returns:
        (count statement, page statement)
    """
    page_stmt = select(Product)
    count_stmt = select(func.count()).select_from(Product)

    if spec.search:
        pattern = f"%{escape_like(spec.search)}%"
        condition = or_(
            func.lower(Product.name).like(pattern, escape=LIKE_ESCAPE),
            func.lower(Product.type).like(pattern, escape=LIKE_ESCAPE),
        )
        page_stmt = page_stmt.where(condition)
        count_stmt = count_stmt.where(condition)

    sort = SortKey.parse(spec.sort)
    if sort == SortKey.PRICE_ASC:
        page_stmt = page_stmt.order_by(Product.price.asc(), Product.id.desc())
    elif sort == SortKey.PRICE_DESC:
        page_stmt = page_stmt.order_by(Product.price.desc(), Product.id.desc())
    else:
        page_stmt = page_stmt.order_by(Product.id.desc())

    page_stmt = page_stmt.offset(spec.offset).limit(spec.page_size)
    return count_stmt, page_stmt


class ProductRepository(BaseRepository):
    """Product-specific repository."""

    def __init__(self, session: AsyncSession):
        """Initialize product repository."""
        super().__init__(session, Product)

    async def list_page(self, spec: ListQuerySpec) -> ProductPage:
        """
        Compute one page of the product list.

        Args:
            spec: Normalized list query

        Returns:
            Page of list items with the filtered total count
        """
        count_stmt, page_stmt = build_list_statements(spec)

        try:
            total_count = (await self.session.execute(count_stmt)).scalar_one()
            result = await self.session.execute(page_stmt)
            products = list(result.scalars().all())

            logger.debug(
                "ProductRepository: Page computed",
                page=spec.page,
                page_size=spec.page_size,
                search=spec.search,
                sort=SortKey.parse(spec.sort).value,
                count=len(products),
                total_count=total_count,
            )

            return ProductPage(
                items=[ProductListItem.model_validate(p) for p in products],
                total_count=total_count,
                page=spec.page,
                page_size=spec.page_size,
            )

        except Exception as e:
            logger.error(
                "ProductRepository: Failed to compute page",
                page=spec.page,
                page_size=spec.page_size,
                error=str(e),
                exc_info=True,
            )
            raise
