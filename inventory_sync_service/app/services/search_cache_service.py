"""Query-path access to the search result cache"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from ..utils.logging import setup_inventory_logging as setup_logging
from .cache import SearchResultCache
from .cache.keys import CacheDomain, CacheKey, CacheKeyCodec

logger = setup_logging("inventory_sync_service.search_cache_service")

Filters = Optional[Mapping[str, Any]]


class SearchCacheService:
    """
    Read-through helpers used by the search endpoints.

    A failing cache never fails the query: read errors count as a miss and
    write errors are logged and dropped.
    """

    def __init__(
        self,
        cache: SearchResultCache,
        codec: Optional[CacheKeyCodec] = None,
        default_ttl: Optional[float] = None,
    ):
        self.cache = cache
        self.codec = codec or CacheKeyCodec()
        self.default_ttl = default_ttl

    def key_for(
        self, domain: CacheDomain, filters: Filters = None, options: Filters = None
    ) -> CacheKey:
        return self.codec.derive_key(domain, filters, options)

    async def get_cached(
        self, domain: CacheDomain, filters: Filters = None, options: Filters = None
    ) -> Optional[Any]:
        key = self.key_for(domain, filters, options)
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(
                "Search cache read failed, treating as miss",
                extra={
                    "domain": CacheDomain(domain).value,
                    "cache_key": key.hash,
                    "error": str(e),
                    "operation": "cache_get_failed",
                },
            )
            return None

    async def store(
        self,
        domain: CacheDomain,
        filters: Filters,
        options: Filters,
        payload: Any,
        ttl: Optional[float] = None,
        generation: Optional[Tuple[int, ...]] = None,
    ) -> None:
        key = self.key_for(domain, filters, options)
        try:
            await self.cache.set(
                key,
                payload,
                ttl if ttl is not None else self.default_ttl,
                generation=generation,
            )
        except Exception as e:
            logger.warning(
                "Search cache write failed",
                extra={
                    "domain": CacheDomain(domain).value,
                    "cache_key": key.hash,
                    "error": str(e),
                    "operation": "cache_set_failed",
                },
            )

    async def get_or_compute(
        self,
        domain: CacheDomain,
        filters: Filters,
        options: Filters,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Serve from cache, or run ``compute`` and cache its result.

        The result is not cached if one of its scopes is invalidated while
        ``compute`` runs.
        """
        cached = await self.get_cached(domain, filters, options)
        if cached is not None:
            return cached

        key = self.key_for(domain, filters, options)
        try:
            generation = self.cache.generation(key)
        except Exception as e:
            logger.warning(
                "Search cache unavailable, serving uncached result",
                extra={
                    "domain": CacheDomain(domain).value,
                    "cache_key": key.hash,
                    "error": str(e),
                    "operation": "cache_generation_failed",
                },
            )
            return await compute()

        result = await compute()
        await self.store(domain, filters, options, result, ttl, generation=generation)
        return result

    # Vendor search

    async def get_cached_vendor_search(
        self, filters: Filters = None, options: Filters = None
    ) -> Optional[Any]:
        return await self.get_cached(CacheDomain.VENDOR_SEARCH, filters, options)

    async def cache_vendor_search(
        self,
        filters: Filters,
        options: Filters,
        results: Any,
        ttl: Optional[float] = None,
    ) -> None:
        await self.store(CacheDomain.VENDOR_SEARCH, filters, options, results, ttl)

    # Product search

    async def get_cached_product_search(
        self, filters: Filters = None, options: Filters = None
    ) -> Optional[Any]:
        return await self.get_cached(CacheDomain.PRODUCT_SEARCH, filters, options)

    async def cache_product_search(
        self,
        filters: Filters,
        options: Filters,
        results: Any,
        ttl: Optional[float] = None,
    ) -> None:
        await self.store(CacheDomain.PRODUCT_SEARCH, filters, options, results, ttl)

    # A single vendor's catalogue

    async def get_cached_vendor_products(
        self, vendor_id: str, options: Filters = None
    ) -> Optional[Any]:
        return await self.get_cached(
            CacheDomain.VENDOR_PRODUCTS, {"vendor_id": vendor_id}, options
        )

    async def cache_vendor_products(
        self,
        vendor_id: str,
        options: Filters,
        results: Any,
        ttl: Optional[float] = None,
    ) -> None:
        await self.store(
            CacheDomain.VENDOR_PRODUCTS, {"vendor_id": vendor_id}, options, results, ttl
        )

    # Administration

    async def clear_all_caches(self) -> int:
        removed = await self.cache.clear()
        logger.info(
            f"Cleared {removed} search cache entries",
            extra={"removed": removed, "operation": "clear_all_caches"},
        )
        return removed

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()
