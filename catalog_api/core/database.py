"""
Catalog Database Configuration

Async database connection management with:
- Connection pooling configured from settings
- Connection retry logic with exponential backoff
- Pool and query metrics for Prometheus
- Explicit unit-of-work sessions (callers commit)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any, Optional

import asyncpg
import structlog
from prometheus_client import Counter, Histogram
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from .config import Settings
from ..models import Base

logger = structlog.get_logger()

# Prometheus metrics
DB_CONNECTION_DURATION = Histogram(
    "catalog_db_connection_duration_seconds",
    "Time spent establishing the initial database connection",
)
DB_SESSION_DURATION = Histogram(
    "catalog_db_session_duration_seconds",
    "Lifetime of database sessions",
)
DB_FAILED_CONNECTIONS = Counter(
    "catalog_db_failed_connections_total",
    "Total number of failed database connection attempts",
)
DB_ROLLBACKS = Counter(
    "catalog_db_rollbacks_total",
    "Total number of sessions rolled back after an error",
)


class DatabaseManager:
    """
    Database connection manager.

    Owns the async engine and session factory. Sessions handed out by
    ``session()`` never commit on their own; the service layer decides when
    a unit of work is complete.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    def _create_engine(self) -> AsyncEngine:
        return create_async_engine(
            self.settings.async_database_url,
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
            pool_timeout=self.settings.DATABASE_POOL_TIMEOUT,
            pool_recycle=self.settings.DATABASE_POOL_RECYCLE,
            pool_pre_ping=True,  # Validate connections before use
            echo=self.settings.DEBUG,
            connect_args={
                "command_timeout": 60,
                "server_settings": {"application_name": "catalog_api"},
            },
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (asyncpg.PostgresConnectionError, OperationalError, ConnectionError, OSError)
        ),
        before_sleep=lambda retry_state: logger.warning(
            "Database connection retry",
            attempt=retry_state.attempt_number,
            wait_time=retry_state.next_action.sleep,
        ),
        reraise=True,
    )
    async def _verify_connection(self) -> None:
        """Run a trivial query, retrying transient connection failures."""
        start_time = time.time()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            DB_FAILED_CONNECTIONS.inc()
            raise
        DB_CONNECTION_DURATION.observe(time.time() - start_time)

    async def initialize(self) -> None:
        """Create the engine and session factory and verify connectivity."""
        self.engine = self._create_engine()
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        try:
            await self._verify_connection()
        except Exception as e:
            logger.error(
                "Database initialization failed", error=str(e), exc_info=True
            )
            raise

        logger.info(
            "Database initialized",
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
        )

    async def create_schema(self) -> None:
        """Create missing tables. Used for development bootstrap."""
        if not self.engine:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database schema ensured", tables=list(Base.metadata.tables))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session.

        The session is rolled back if the block raises. Callers are
        responsible for committing.

        Yields:
            AsyncSession: Database session
        """
        if not self.session_factory:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        start_time = time.time()

        async with self.session_factory() as session:
            try:
                yield session
            except Exception as e:
                await session.rollback()
                DB_ROLLBACKS.inc()
                logger.error(
                    "Database transaction failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            finally:
                DB_SESSION_DURATION.observe(time.time() - start_time)

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dict with health status and pool statistics
        """
        if not self.engine:
            return {"status": "not_initialized"}

        start_time = time.time()

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                result.scalar()

            pool = self.engine.pool
            return {
                "status": "healthy",
                "duration_seconds": time.time() - start_time,
                "pool": {
                    "size": pool.size(),
                    "checked_in": pool.checkedin(),
                    "checked_out": pool.checkedout(),
                    "overflow": pool.overflow(),
                },
            }

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                "Database health check failed",
                error=str(e),
                duration_seconds=duration,
            )
            return {
                "status": "unhealthy",
                "duration_seconds": duration,
                "error": str(e),
            }

    async def close(self) -> None:
        """Close database connections and cleanup resources."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

            logger.info("Database connections closed")
