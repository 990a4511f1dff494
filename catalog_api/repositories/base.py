"""
Base Repository

This module implements the base repository pattern shared by catalog
repositories. Repositories flush but never commit; the unit of work belongs
to the service layer.
"""

from typing import Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..models import Base

logger = structlog.get_logger()


class BaseRepository:
    """
    Base repository with primary-key lookups and persistence helpers.

    Each repository subclass specifies its model type directly.
    """

    def __init__(self, session: AsyncSession, model: Type[Base]):
        """
        Initialize repository with strict input validation.

        Args:
            session: AsyncSession for database operations
            model: SQLAlchemy model class

        Raises:
            TypeError: If session is not AsyncSession or model is invalid
        """
        if not isinstance(session, AsyncSession):
            raise TypeError(
                f"session must be AsyncSession instance, got {type(session).__name__}"
            )

        if not model or not hasattr(model, "__tablename__"):
            raise TypeError(
                f"model must be valid SQLAlchemy model with __tablename__, got {type(model).__name__}"
            )

        self.session = session
        self.model = model

    async def get(self, id: int) -> Optional[Base]:
        """
        Get entity by primary key.

        Args:
            id: Entity identifier

        Returns:
            Entity if found, None otherwise
        """
        try:
            stmt = select(self.model).where(self.model.id == id)
            result = await self.session.execute(stmt)
            entity = result.scalar_one_or_none()

            if entity:
                logger.debug(
                    "Repository: Entity retrieved",
                    model=self.model.__name__,
                    entity_id=id,
                )

            return entity

        except Exception as e:
            logger.error(
                "Repository: Failed to get entity",
                model=self.model.__name__,
                entity_id=id,
                error=str(e),
                exc_info=True,
            )
            raise  # Preserve full error context

    async def create(self, obj: Base) -> Base:
        """
        Add a new entity and flush it so generated columns are populated.

        Raises:
            ValueError: If obj is None
            TypeError: If obj is not a model instance
        """
        if obj is None:
            raise ValueError("Entity object is required (cannot be None)")

        if not isinstance(obj, Base):
            raise TypeError(
                f"Entity must be SQLAlchemy model instance, got {type(obj).__name__}"
            )

        try:
            self.session.add(obj)
            await self.session.flush()
            await self.session.refresh(obj)

            logger.info(
                "Repository: Entity created",
                model=self.model.__name__,
                entity_id=obj.id,
            )

            return obj

        except Exception as e:
            logger.error(
                "Repository: Failed to create entity",
                model=self.model.__name__,
                error=str(e),
                exc_info=True,
            )
            raise

    async def update(self, obj: Base) -> Base:
        """Flush pending attribute changes of an already loaded entity."""
        if obj is None or getattr(obj, "id", None) is None:
            raise ValueError("Entity must be persisted before update")

        try:
            await self.session.flush()

            logger.info(
                "Repository: Entity updated",
                model=self.model.__name__,
                entity_id=obj.id,
            )

            return obj

        except Exception as e:
            logger.error(
                "Repository: Failed to update entity",
                model=self.model.__name__,
                entity_id=obj.id,
                error=str(e),
                exc_info=True,
            )
            raise

    async def delete(self, id: int) -> bool:
        """
        Delete entity by primary key.

        Returns:
            True if entity was deleted, False if not found
        """
        try:
            obj = await self.get(id)
            if not obj:
                logger.warning(
                    "Repository: Entity not found for deletion",
                    model=self.model.__name__,
                    entity_id=id,
                )
                return False

            await self.session.delete(obj)
            await self.session.flush()

            logger.info(
                "Repository: Entity deleted",
                model=self.model.__name__,
                entity_id=id,
            )

            return True

        except Exception as e:
            logger.error(
                "Repository: Failed to delete entity",
                model=self.model.__name__,
                entity_id=id,
                error=str(e),
                exc_info=True,
            )
            raise
