"""
Redis Infrastructure Exceptions

Domain-specific exceptions for Redis-backed cache operations.
Anything deriving from CacheUnavailableException means the backing store
could not be reached; callers on the read path treat it as a cache miss.
"""

from typing import Optional, Any, Dict


class RedisException(Exception):
    """Base exception for Redis-related errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class CacheUnavailableException(RedisException):
    """Raised when the cache backing store cannot serve a request."""

    def __init__(
        self,
        message: str = "Cache backing store unavailable",
        error_code: str = "CACHE_UNAVAILABLE",
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        details = dict(details or {})
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, error_code=error_code, details=details)
        # Preserve exception context for debugging (exception chaining)
        if original_error:
            self.__cause__ = original_error


class RedisConnectionException(CacheUnavailableException):
    """Raised when Redis connection fails or is lost."""

    def __init__(
        self,
        message: str = "Redis connection failed",
        host: Optional[str] = None,
        port: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if host:
            details["host"] = host
        if port:
            details["port"] = port

        super().__init__(
            message=message,
            error_code="REDIS_CONNECTION_ERROR",
            details=details,
            original_error=original_error,
        )


class RedisOperationTimeoutException(CacheUnavailableException):
    """Raised when Redis operation times out."""

    def __init__(
        self,
        operation: str,
        timeout_seconds: Optional[float] = None,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {"operation": operation}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        if key:
            details["key"] = key

        super().__init__(
            message=f"Redis operation '{operation}' timed out",
            error_code="REDIS_TIMEOUT_ERROR",
            details=details,
            original_error=original_error,
        )


class RedisCircuitBreakerOpenException(CacheUnavailableException):
    """Raised when Redis circuit breaker is open."""

    def __init__(
        self, message: str = "Redis circuit breaker is open - service unavailable"
    ):
        super().__init__(
            message=message,
            error_code="REDIS_CIRCUIT_BREAKER_OPEN",
            details={"service_status": "unavailable"},
        )


class RedisConfigurationException(RedisException):
    """Raised when Redis configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="REDIS_CONFIGURATION_ERROR", details=details
        )
        if original_error:
            self.__cause__ = original_error


class CacheSerializationException(RedisException):
    """Raised when a value cannot be encoded into a cache payload."""

    def __init__(self, key: str, original_error: Optional[Exception] = None):
        details = {"key": key}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message=f"Failed to serialize cache payload for key: {key}",
            error_code="CACHE_SERIALIZATION_ERROR",
            details=details,
        )
        if original_error:
            self.__cause__ = original_error
