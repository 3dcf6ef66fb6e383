"""Search cache and event bus administration endpoints"""

from typing import Any, Dict

from fastapi import APIRouter

from ...core.event_management import InventorySyncContainer
from ...schemas.cache import CacheClearResponse, CacheStatsResponse
from ...services.search_cache_service import SearchCacheService
from ...utils.logging import setup_inventory_logging as setup_logging
from ..dependencies import ContainerDep, SearchCacheDep

logger = setup_logging("inventory_sync_service.cache_api")
router = APIRouter()


@router.delete(
    "/cache", response_model=CacheClearResponse, response_model_by_alias=True
)
async def clear_all_caches(
    search_cache: SearchCacheService = SearchCacheDep,
) -> CacheClearResponse:
    """Remove every cached search result"""
    removed = await search_cache.clear_all_caches()
    return CacheClearResponse(removed=removed)


@router.get(
    "/cache/stats", response_model=CacheStatsResponse, response_model_by_alias=True
)
async def get_cache_stats(
    search_cache: SearchCacheService = SearchCacheDep,
) -> CacheStatsResponse:
    """Read-only search cache statistics"""
    return CacheStatsResponse(**search_cache.get_cache_stats())


@router.get("/events/stats")
async def get_event_stats(
    container: InventorySyncContainer = ContainerDep,
) -> Dict[str, Any]:
    """Event bus, invalidator and notifier counters"""
    return container.get_event_stats()
