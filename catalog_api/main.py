"""
Catalog API - Main FastAPI Application

Product catalog service with:
- PostgreSQL system of record via SQLAlchemy async
- Redis read-through cache for paginated product listings
- Prefix invalidation of cached listings on every write
- JWT bearer authentication for writes
- Prometheus metrics and OpenTelemetry tracing
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
import structlog

from .api.endpoints.health import router as health_router
from .api.endpoints.products import router as products_router
from .constants import APP_NAME, APP_VERSION
from .core.config import Settings, get_settings
from .core.correlation import CorrelationIdMiddleware, get_request_correlation_id
from .core.database import DatabaseManager
from .core.exceptions import (
    AuthenticationException,
    CatalogValidationException,
    ProductNotFoundException,
)
from .core.logging import configure_logging
from .core.security import JWTAuthenticator
from .core.telemetry import OpenTelemetryManager, add_span_attribute
from .infrastructure.redis.connection_factory import RedisConnectionFactory
from .middleware.security import SecurityHeadersMiddleware
from .services.cache.cache_manager import CacheManager

logger = structlog.get_logger()


# Application lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the database and cache resources and tear them down on exit."""
    settings: Settings = app.state.settings
    logger.info("Starting Catalog API", environment=settings.ENVIRONMENT)

    database_manager = DatabaseManager(settings)
    redis_factory = RedisConnectionFactory(settings)

    try:
        await database_manager.initialize()
        if settings.is_development:
            await database_manager.create_schema()

        app.state.telemetry.instrument_engine(database_manager.engine)

        redis_client = redis_factory.create_client()
        app.state.database_manager = database_manager
        app.state.redis_factory = redis_factory
        app.state.cache_manager = CacheManager.from_settings(
            redis_client,
            settings,
            circuit_breaker=redis_factory.create_circuit_breaker(),
        )

        logger.info("Catalog API started", version=APP_VERSION)

    except Exception:
        logger.exception("Failed to initialize application")
        await redis_factory.close()
        await database_manager.close()
        raise

    yield

    # Shutdown
    logger.info("Shutting down Catalog API")

    try:
        await redis_factory.close()
        await database_manager.close()
        logger.info("Application shutdown completed")
    except Exception as e:
        logger.error("Error during application shutdown", error=str(e))
    finally:
        app.state.telemetry.shutdown()


def _error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message}, headers=headers
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map catalog exceptions to HTTP responses."""

    @app.exception_handler(CatalogValidationException)
    async def validation_exception_handler(
        request: Request, exc: CatalogValidationException
    ):
        return _error_response(400, exc.message)

    @app.exception_handler(ProductNotFoundException)
    async def not_found_exception_handler(
        request: Request, exc: ProductNotFoundException
    ):
        return _error_response(404, exc.message)

    @app.exception_handler(AuthenticationException)
    async def authentication_exception_handler(
        request: Request, exc: AuthenticationException
    ):
        return _error_response(401, exc.message, headers={"WWW-Authenticate": "Bearer"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler; details stay in logs and traces."""
        correlation_id = get_request_correlation_id(request)

        add_span_attribute("error.type", type(exc).__name__)
        add_span_attribute("error.path", request.url.path)

        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            correlation_id=correlation_id,
            exc_info=exc,
        )
        return _error_response(500, "Internal Server Error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Resources that need I/O (database, Redis) are created in the lifespan;
    everything else is attached to ``app.state`` here so that tests can run
    the app without starting it.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=APP_NAME,
        description="Product catalog with cached, filterable listings",
        version=APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.authenticator = JWTAuthenticator.from_settings(settings)
    app.state.telemetry = OpenTelemetryManager(settings)
    app.state.telemetry.initialize(app)

    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    # Add correlation ID middleware for request tracking
    app.add_middleware(CorrelationIdMiddleware)

    # Include API routers
    app.include_router(health_router)
    app.include_router(products_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus exposition endpoint."""
        return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    register_exception_handlers(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "catalog_api.main:app",
        host=_settings.API_HOST,
        port=_settings.API_PORT,
        reload=_settings.is_development,
    )
