"""
FastAPI dependency injection for the Inventory Sync Service

Everything is resolved from the service container stored on ``app.state``
at startup; there are no module-level service instances.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.event_management import InventorySyncContainer
from ..services.inventory_service import InventoryService
from ..services.search_cache_service import SearchCacheService

# =====================================================
# CONTAINER DEPENDENCIES
# =====================================================


def get_container(request: Request) -> InventorySyncContainer:
    """Provide the service container built during startup"""
    container: Optional[InventorySyncContainer] = getattr(
        request.app.state, "container", None
    )
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inventory sync service is not initialized",
        )
    return container


def get_search_cache_service(
    container: InventorySyncContainer = Depends(get_container),
) -> SearchCacheService:
    return container.search_cache


# =====================================================
# DATABASE DEPENDENCIES
# =====================================================


async def get_async_session(
    container: InventorySyncContainer = Depends(get_container),
) -> AsyncGenerator[AsyncSession, None]:
    """Provide async database session"""
    if container.database is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not configured",
        )
    async for session in container.database.get_async_session():
        yield session


# =====================================================
# SERVICE DEPENDENCIES
# =====================================================


def get_inventory_service(
    container: InventorySyncContainer = Depends(get_container),
    session: AsyncSession = Depends(get_async_session),
) -> InventoryService:
    """Provide InventoryService bound to the request session"""
    return container.inventory_service(session)


def get_vendor_id(x_vendor_id: str = Header(..., min_length=1)) -> str:
    """Vendor identity forwarded by the API gateway"""
    return x_vendor_id


# Commonly used dependency shortcuts
ContainerDep = Depends(get_container)
SearchCacheDep = Depends(get_search_cache_service)
InventoryServiceDep = Depends(get_inventory_service)
VendorIdDep = Depends(get_vendor_id)
