"""Repository layer for Inventory Sync Service"""

from .product_repository import ProductRepository

__all__ = [
    "ProductRepository",
]
