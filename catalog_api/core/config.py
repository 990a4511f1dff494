"""
Catalog API Application Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional, List
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Database configuration
    DATABASE_URL: str = Field(
        ...,
        description="Database connection URL with asyncpg driver",
    )
    DATABASE_POOL_SIZE: int = Field(
        default=10, ge=1, le=100, description="Database connection pool size"
    )
    DATABASE_MAX_OVERFLOW: int = Field(
        default=20, ge=0, le=100, description="Maximum overflow connections"
    )
    DATABASE_POOL_TIMEOUT: int = Field(
        default=30, ge=1, le=300, description="Connection pool timeout in seconds"
    )
    DATABASE_POOL_RECYCLE: int = Field(
        default=3600, ge=300, le=86400, description="Connection recycle time in seconds"
    )

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=50, description="Redis connection pool size"
    )
    REDIS_CONNECTION_TIMEOUT: float = Field(
        default=2.0, gt=0, le=30, description="Redis socket connect timeout in seconds"
    )
    REDIS_OPERATION_TIMEOUT: float = Field(
        default=2.0, gt=0, le=30, description="Redis socket operation timeout in seconds"
    )
    REDIS_SCAN_BATCH_SIZE: int = Field(
        default=500, ge=10, le=10000, description="SCAN COUNT hint for prefix sweeps"
    )

    # Circuit breaker settings
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(
        default=5, ge=1, le=20, description="Circuit breaker failure threshold"
    )
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Circuit breaker recovery timeout in seconds",
    )

    # List cache policy
    PRODUCT_LIST_CACHE_TTL_SECONDS: int = Field(
        default=60, ge=1, le=86400, description="Staleness window for cached list pages"
    )
    PRODUCT_LIST_DEFAULT_PAGE_SIZE: int = Field(
        default=20, ge=1, le=200, description="Page size used when none is given"
    )
    PRODUCT_LIST_MAX_PAGE_SIZE: int = Field(
        default=200, ge=1, le=1000, description="Upper bound for requested page size"
    )

    # API configuration
    API_HOST: str = Field(default="0.0.0.0", description="API server host")
    API_PORT: int = Field(default=8000, ge=1, le=65535, description="API server port")

    # Security configuration
    SECRET_KEY: str = Field(
        ...,
        min_length=32,
        description="JWT secret key for authentication",
    )
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT signing algorithm")
    JWT_ISSUER: Optional[str] = Field(default=None, description="Expected JWT issuer")
    JWT_AUDIENCE: Optional[str] = Field(
        default=None, description="Expected JWT audience"
    )
    JWT_LEEWAY_SECONDS: int = Field(
        default=30, ge=0, le=300, description="Allowed clock skew for exp/nbf claims"
    )
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="CORS allowed origins (comma-separated)",
    )
    CORS_CREDENTIALS: bool = Field(default=True, description="Allow CORS credentials")

    # OpenTelemetry configuration
    OTEL_ENABLED: bool = Field(default=False, description="Enable OTLP trace export")
    OTEL_EXPORTER_OTLP_ENDPOINT: str = Field(
        default="http://localhost:4317", description="OpenTelemetry OTLP endpoint"
    )
    OTEL_SERVICE_NAME: str = Field(
        default="catalog-api", description="OpenTelemetry service name"
    )
    OTEL_SERVICE_VERSION: str = Field(
        default="0.1.0", description="OpenTelemetry service version"
    )

    # Development and debugging
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL connection URL")
        return v

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v):
        """Validate Redis URL scheme."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("REDIS_URL must use redis://, rediss:// or unix://")
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as list."""
        return [
            origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()
        ]

    @property
    def async_database_url(self) -> str:
        """DATABASE_URL with the asyncpg driver selected."""
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )
        return self.DATABASE_URL


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
