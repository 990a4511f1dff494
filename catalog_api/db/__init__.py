"""
Catalog Request-Scoped Resources

FastAPI dependencies that hand out the application-wide resources created
in the lifespan (database manager, cache manager) and per-request sessions.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import DatabaseManager
from ..services.cache.cache_manager import CacheManager
from ..services.products import ProductCatalogService


def get_database_manager(request: Request) -> DatabaseManager:
    """Database manager created at startup."""
    return request.app.state.database_manager


def get_cache_manager(request: Request) -> CacheManager:
    """Cache manager created at startup."""
    return request.app.state.cache_manager


async def get_database_session(
    database_manager: DatabaseManager = Depends(get_database_manager),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session for the current request.

    Yields:
        AsyncSession: Session rolled back automatically on error
    """
    async with database_manager.session() as session:
        yield session


def get_product_service(
    session: AsyncSession = Depends(get_database_session),
    cache_manager: CacheManager = Depends(get_cache_manager),
) -> ProductCatalogService:
    """Product catalog service bound to the request session."""
    return ProductCatalogService(session, cache_manager)
