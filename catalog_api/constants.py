"""
Catalog Global Constants

Centralized location for all system-wide constants used across the application.
"""

from datetime import datetime, timezone

# Cache namespaces
PRODUCTS_NAMESPACE = "products"

# products.id is a 32-bit signed integer column
MAX_PRODUCT_ID = 2_147_483_647


# Timestamp Functions
def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone."""
    return datetime.now(timezone.utc)


# Application Constants
APP_NAME = "Catalog API"
APP_VERSION = "0.1.0"
