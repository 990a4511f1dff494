"""
Repository Pattern Implementation

All data access goes through repositories; repositories flush, services commit.
"""

from .base import BaseRepository
from .product import ProductRepository

__all__ = [
    "BaseRepository",
    "ProductRepository",
]
