"""Product write endpoints; every mutation publishes an inventory change event"""

from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Response, status

from ...core.errors import ProductOwnershipError
from ...schemas.product import (
    AvailabilityUpdate,
    BulkAvailabilityRequest,
    BulkAvailabilityResult,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    VendorInventoryStats,
)
from ...services.cache.keys import CacheDomain
from ...services.inventory_service import InventoryService
from ...services.search_cache_service import SearchCacheService
from ...utils.logging import setup_inventory_logging as setup_logging
from ..dependencies import InventoryServiceDep, SearchCacheDep, VendorIdDep

logger = setup_logging("inventory_sync_service.products_api")
router = APIRouter(prefix="/products")


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    vendor_id: str = VendorIdDep,
    service: InventoryService = InventoryServiceDep,
):
    """Create a product owned by the calling vendor"""
    if product_data.vendor_id != vendor_id:
        logger.warning(
            "Rejected product creation for another vendor",
            extra={
                "product_id": product_data.product_id,
                "vendor_id": vendor_id,
                "target_vendor_id": product_data.vendor_id,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Products can only be created for the calling vendor",
        )
    return await service.create_product(product_data)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    service: InventoryService = InventoryServiceDep,
):
    """Get product details by ID"""
    return await service.get_product(product_id)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    product_data: ProductUpdate,
    vendor_id: str = VendorIdDep,
    service: InventoryService = InventoryServiceDep,
):
    """Update product fields (owner only)"""
    return await service.update_product(product_id, product_data, vendor_id)


@router.put("/{product_id}/availability", response_model=ProductResponse)
async def update_availability(
    product_id: str,
    update: AvailabilityUpdate,
    vendor_id: str = VendorIdDep,
    service: InventoryService = InventoryServiceDep,
):
    """Change product availability (owner only)"""
    return await service.update_availability(
        product_id, update.availability, vendor_id
    )


@router.post("/availability/bulk", response_model=BulkAvailabilityResult)
async def bulk_update_availability(
    request: BulkAvailabilityRequest,
    vendor_id: str = VendorIdDep,
    service: InventoryService = InventoryServiceDep,
):
    """Apply several availability changes; failures are reported per item"""
    return await service.bulk_update_availability(request.updates, vendor_id)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str,
    vendor_id: str = VendorIdDep,
    service: InventoryService = InventoryServiceDep,
) -> Response:
    """Delete a product (owner only)"""
    await service.delete_product(product_id, vendor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/vendors/{owner_id}", response_model=List[ProductResponse])
async def list_vendor_products(
    owner_id: str,
    service: InventoryService = InventoryServiceDep,
    search_cache: SearchCacheService = SearchCacheDep,
):
    """A vendor's catalogue, served from the search result cache when fresh"""

    async def load_catalogue() -> List[Dict[str, Any]]:
        products = await service.list_vendor_products(owner_id)
        return [product.model_dump(mode="json") for product in products]

    return await search_cache.get_or_compute(
        CacheDomain.VENDOR_PRODUCTS, {"vendor_id": owner_id}, None, load_catalogue
    )


@router.get("/vendors/{owner_id}/stats", response_model=VendorInventoryStats)
async def get_vendor_inventory_stats(
    owner_id: str,
    vendor_id: str = VendorIdDep,
    service: InventoryService = InventoryServiceDep,
):
    """Inventory counts for the calling vendor"""
    if owner_id != vendor_id:
        raise ProductOwnershipError(product_id="*", vendor_id=vendor_id)
    return await service.get_vendor_inventory_stats(owner_id)
