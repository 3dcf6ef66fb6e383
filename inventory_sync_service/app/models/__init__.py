"""Inventory Sync Service Models"""

from .base import InventorySyncBase, TimestampedModel
from .product import Product

__all__ = [
    "InventorySyncBase",
    "TimestampedModel",
    "Product",
]
