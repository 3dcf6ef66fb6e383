"""
Cache invalidation for the Inventory Sync Service
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from ...events.base import EventHandler
from ...events.schemas import (
    MEMBERSHIP_EVENT_TYPES,
    PRICE_FIELD,
    ChangeEvent,
    ProductSnapshot,
)
from ...utils.logging import setup_inventory_logging
from . import SearchResultCache
from .keys import (
    CacheDomain,
    brackets_for_price,
    category_scope,
    domain_scope,
    price_scope,
    vendor_scope,
)

logger = setup_inventory_logging("inventory_sync_service.cache_invalidation")

# Domains whose results can contain any vendor's products
_SEARCH_DOMAINS = (CacheDomain.PRODUCT_SEARCH, CacheDomain.VENDOR_SEARCH)


def _as_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class CacheInvalidator(EventHandler):
    """Evicts the cached results a change event could have affected"""

    def __init__(self, cache: SearchResultCache):
        self.cache = cache
        self.events_processed = 0
        self.entries_evicted = 0
        self.failures = 0

    def scopes_for(self, event: ChangeEvent) -> List[str]:
        """Scope tags whose entries may be stale after ``event``"""
        scopes: List[str] = [
            vendor_scope(CacheDomain.VENDOR_PRODUCTS, event.vendor_id),
            vendor_scope(CacheDomain.PRODUCT_SEARCH, event.vendor_id),
        ]

        prior = event.prior_snapshot()
        snapshots = [s for s in (event.snapshot, prior) if s is not None]

        for category in self._categories(event, snapshots):
            scopes.extend(category_scope(domain, category) for domain in _SEARCH_DOMAINS)

        brackets = []
        for price in self._prices(event, snapshots):
            for bracket in brackets_for_price(price):
                if bracket not in brackets:
                    brackets.append(bracket)
        for bracket in brackets:
            scopes.extend(price_scope(domain, bracket) for domain in _SEARCH_DOMAINS)

        if event.event_type in MEMBERSHIP_EVENT_TYPES:
            scopes.extend(domain_scope(domain) for domain in _SEARCH_DOMAINS)

        return list(dict.fromkeys(scopes))

    @staticmethod
    def _categories(
        event: ChangeEvent, snapshots: Iterable[ProductSnapshot]
    ) -> List[str]:
        categories: List[str] = [s.category for s in snapshots if s.category]
        # A recategorized product also leaves its old category
        for change in event.changes:
            if change.field == "category":
                categories.extend(
                    value
                    for value in (change.old_value, change.new_value)
                    if isinstance(value, str) and value
                )
        return list(dict.fromkeys(categories))

    @staticmethod
    def _prices(event: ChangeEvent, snapshots: Iterable[ProductSnapshot]) -> Set[float]:
        prices: Set[float] = set()
        for snapshot in snapshots:
            price = _as_price(snapshot.base_price)
            if price is not None:
                prices.add(price)
        for change in event.changes:
            if change.field != PRICE_FIELD:
                continue
            for value in (change.old_value, change.new_value):
                price = _as_price(value)
                if price is not None:
                    prices.add(price)
        return prices

    async def handle(self, event: ChangeEvent) -> None:
        """Evict affected entries; failures are logged and never raised"""
        self.events_processed += 1
        try:
            scopes = self.scopes_for(event)
            evicted = 0
            for scope in scopes:
                evicted += await self.cache.evict_matching(scope)
            self.entries_evicted += evicted

            logger.info(
                f"Invalidated {evicted} search cache entries",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "product_id": event.product_id,
                    "scopes": scopes,
                    "evicted": evicted,
                    "operation": "invalidate_cache",
                },
            )
        except Exception as e:
            self.failures += 1
            logger.error(
                "Cache invalidation failed",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "operation": "invalidate_cache_failed",
                },
                exc_info=True,
            )

    def get_stats(self) -> Dict[str, int]:
        return {
            "events_processed": self.events_processed,
            "entries_evicted": self.entries_evicted,
            "failures": self.failures,
        }
