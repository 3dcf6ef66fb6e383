"""
Inventory Sync Service exception taxonomy.

Only ``DistributionChannelError`` is meant to reach the caller of a product
mutation; everything else is recovered inside the pipeline.
"""

from typing import Any, Dict, Optional


class InventorySyncError(Exception):
    """Base class for inventory sync errors"""

    error_type = "inventory_sync_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidChangeEventError(InventorySyncError, ValueError):
    """A draft event is missing its entity id, owner id or event type"""

    error_type = "invalid_change_event"
    status_code = 400


class DistributionChannelError(InventorySyncError):
    """The distribution channel could not accept an event"""

    error_type = "distribution_channel_error"
    status_code = 503


class ProductNotFoundError(InventorySyncError, LookupError):
    """No product exists with the requested id"""

    error_type = "product_not_found"
    status_code = 404

    def __init__(self, product_id: str):
        super().__init__(
            f"Product not found: {product_id}", details={"product_id": product_id}
        )
        self.product_id = product_id


class ProductOwnershipError(InventorySyncError, PermissionError):
    """The acting vendor does not own the product"""

    error_type = "product_ownership_error"
    status_code = 403

    def __init__(self, product_id: str, vendor_id: str):
        super().__init__(
            f"Vendor {vendor_id} does not own product {product_id}",
            details={"product_id": product_id, "vendor_id": vendor_id},
        )
        self.product_id = product_id
        self.vendor_id = vendor_id
