"""
Middleware modules for request/response processing.

Includes:
- Security headers
Correlation ID tracking middleware lives in core.correlation.
"""

from .security import SecurityHeadersMiddleware

__all__ = [
    "SecurityHeadersMiddleware",
]
