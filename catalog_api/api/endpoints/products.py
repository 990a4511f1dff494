"""
Products API endpoints

CRUD operations for catalog products:
- Paginated, filterable listing served through the read-through cache
- Single product reads straight from the database
- Authenticated writes that invalidate every cached list page
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
import structlog

from ...core.security import AuthContext, require_authenticated_user
from ...db import get_product_service
from ...domain.cache.value_objects import ListQuerySpec
from ...repositories.product import ProductPage
from ...services.products import ProductCatalogService

logger = structlog.get_logger()
router = APIRouter(prefix="/api/products", tags=["products"])


# Pydantic schemas for API
class ProductBase(BaseModel):
    """Base product schema with validation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    type: str = Field(..., min_length=1, max_length=100, description="Product type")
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    quantity: int = Field(..., ge=0)

    @field_validator("name", "type")
    @classmethod
    def strip_required_text(cls, v: str) -> str:
        """Trim surrounding whitespace; blank values are rejected."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ProductCreate(ProductBase):
    """Schema for creating products."""


class ProductUpdate(ProductBase):
    """Schema for replacing the mutable fields of a product."""

    is_active: bool = True


class ProductRead(BaseModel):
    """Schema for reading products."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    name: str
    type: str
    price: Decimal
    quantity: int
    is_active: bool
    created_utc: datetime


def _parse_int(value: Optional[str], default: int) -> int:
    """Lenient integer parsing; malformed input falls back to default."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


@router.get("", response_model=ProductPage)
async def list_products(
    page: Optional[str] = Query(None, description="1-based page number"),
    page_size: Optional[str] = Query(None, alias="pageSize", description="Items per page"),
    search: Optional[str] = Query(None, description="Case-insensitive name/type filter"),
    sort: Optional[str] = Query(None, description="default, price_asc or price_desc"),
    service: ProductCatalogService = Depends(get_product_service),
) -> ProductPage:
    """
    List products.

    Out-of-range or malformed paging and sort values are normalized instead
    of rejected.
    """
    spec = ListQuerySpec(
        page=_parse_int(page, 1),
        page_size=_parse_int(page_size, 0),
        search=search,
        sort=sort,
    )
    return await service.list_products(spec)


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: int,
    service: ProductCatalogService = Depends(get_product_service),
) -> ProductRead:
    """Get a single product by id."""
    product = await service.get_product(product_id)
    return ProductRead.model_validate(product)


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    response: Response,
    user: AuthContext = Depends(require_authenticated_user),
    service: ProductCatalogService = Depends(get_product_service),
) -> ProductRead:
    """Create a product."""
    product = await service.create_product(
        name=payload.name,
        type=payload.type,
        price=payload.price,
        quantity=payload.quantity,
    )

    logger.info("Product create request completed", product_id=product.id, user=user.subject)

    response.headers["Location"] = f"{router.prefix}/{product.id}"
    return ProductRead.model_validate(product)


@router.put(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    user: AuthContext = Depends(require_authenticated_user),
    service: ProductCatalogService = Depends(get_product_service),
) -> Response:
    """Replace name, type, price, quantity and active flag of a product."""
    await service.update_product(
        product_id,
        name=payload.name,
        type=payload.type,
        price=payload.price,
        quantity=payload.quantity,
        is_active=payload.is_active,
    )

    logger.info("Product update request completed", product_id=product_id, user=user.subject)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_product(
    product_id: int,
    user: AuthContext = Depends(require_authenticated_user),
    service: ProductCatalogService = Depends(get_product_service),
) -> Response:
    """Delete a product."""
    await service.delete_product(product_id)

    logger.info("Product delete request completed", product_id=product_id, user=user.subject)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
