"""
Catalog Correlation ID Middleware

Implements correlation ID management for request tracking.

Features:
- Automatic UUID v4 correlation ID generation for new requests
- Respects existing correlation ID from request headers
- Binds the ID into structlog context variables for the request
- Adds correlation ID to response headers
"""

import re
import uuid
from typing import Optional, Callable, Awaitable

import structlog
from fastapi import Request
from starlette.types import ASGIApp
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from .telemetry import set_correlation_id

logger = structlog.get_logger()

CORRELATION_HEADERS = (
    "x-correlation-id",
    "correlation-id",
    "x-request-id",
    "request-id",
)

_VALID_ID = re.compile(r"^[a-zA-Z0-9\-_\.]{8,255}$")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware for managing correlation IDs in HTTP requests.

    Generates or extracts the correlation ID, exposes it to logging and
    tracing, and echoes it back in the response headers.
    """

    def __init__(self, app: ASGIApp, header_name: str = "x-correlation-id"):
        super().__init__(app)
        self.header_name = header_name.lower()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[StarletteResponse]],
    ) -> StarletteResponse:
        correlation_id = self._extract_or_generate_correlation_id(request)

        set_correlation_id(correlation_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Unexpected error during request processing",
                error=str(e),
                exc_info=True,
            )
            raise

        response.headers[self.header_name] = correlation_id
        logger.info("Request completed", status_code=response.status_code)
        return response

    def _extract_or_generate_correlation_id(self, request: Request) -> str:
        correlation_id = get_request_correlation_id(request)

        if correlation_id and not _VALID_ID.match(correlation_id):
            logger.warning(
                "Invalid correlation ID format in request header, generating new one",
                received_correlation_id=correlation_id[:64],
            )
            correlation_id = None

        return correlation_id or str(uuid.uuid4())


def get_request_correlation_id(request: Request) -> Optional[str]:
    """
    Extract correlation ID from request headers.

    Returns:
        Correlation ID if present, None otherwise
    """
    for header_name in CORRELATION_HEADERS:
        value = request.headers.get(header_name, "").strip()
        if value:
            return value

    return None
