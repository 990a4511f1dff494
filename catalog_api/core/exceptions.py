"""
Catalog Application Exceptions

Exceptions raised by the service layer and mapped to HTTP responses by the
handlers registered in main.
"""

from typing import Optional, Any, Dict


class CatalogException(Exception):
    """Base exception for catalog errors."""

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


class ProductNotFoundException(CatalogException):
    """Raised when a product does not exist."""

    def __init__(self, product_id: int):
        super().__init__(
            message=f"Product {product_id} not found",
            error_code="PRODUCT_NOT_FOUND",
            details={"product_id": product_id},
        )


class CatalogValidationException(CatalogException):
    """Raised when an argument violates a domain rule."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {}
        if field:
            details["field"] = field

        super().__init__(
            message=message, error_code="VALIDATION_ERROR", details=details
        )


class AuthenticationException(CatalogException):
    """Raised when a bearer token is missing or cannot be verified."""

    def __init__(
        self,
        message: str = "Not authenticated",
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if original_error:
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="AUTHENTICATION_FAILED", details=details
        )
        if original_error:
            self.__cause__ = original_error
