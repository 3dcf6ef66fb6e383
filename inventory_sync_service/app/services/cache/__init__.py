"""
In-memory search result cache for the Inventory Sync Service
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set, Tuple

from ...utils.logging import setup_inventory_logging
from .keys import CacheDomain, CacheKey, CacheKeyCodec

logger = setup_inventory_logging("inventory_sync_service.search_cache")


@dataclass
class CacheEntry:
    key: CacheKey
    payload: Any
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class SearchResultCache:
    """
    Size and TTL bounded cache of query results.

    Entries are indexed by the scope tags of their key, so evicting everything
    minted under a scope is a direct lookup.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_entries: int = 10000,
        eviction_target: float = 0.9,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.eviction_target = eviction_target
        self._clock = clock
        # Insertion order tracks stored_at order
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._scope_index: Dict[str, Set[str]] = {}
        # Bumped on every eviction of a scope, whether or not it held entries
        self._scope_generations: Dict[str, int] = {}
        self._clear_generation = 0
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    async def get(self, key: CacheKey) -> Optional[Any]:
        """Get payload from cache, treating expired entries as absent"""
        entry = self._entries.get(key.hash)
        if entry is None:
            self.misses += 1
            return None

        if entry.is_expired(self._clock()):
            self._remove(key.hash)
            self.misses += 1
            return None

        self.hits += 1
        return entry.payload

    def generation(self, key: CacheKey) -> Tuple[int, ...]:
        """Invalidation generation of every scope the key is minted under"""
        return (self._clear_generation,) + tuple(
            self._scope_generations.get(scope, 0) for scope in sorted(key.scopes)
        )

    async def set(
        self,
        key: CacheKey,
        payload: Any,
        ttl: Optional[float] = None,
        generation: Optional[Tuple[int, ...]] = None,
    ) -> bool:
        """
        Store payload under key, making room first when the cache is full.

        When ``generation`` is given and one of the key's scopes was evicted
        since it was taken, the payload may predate that change and is not
        stored.
        """
        if generation is not None and generation != self.generation(key):
            logger.debug(
                "Skipped caching result computed before an invalidation",
                extra={"cache_key": key.hash, "operation": "cache_set_stale"},
            )
            return False

        if key.hash not in self._entries and len(self._entries) >= self.max_entries:
            self._make_room()

        self._remove(key.hash)
        self._entries[key.hash] = CacheEntry(
            key=key,
            payload=payload,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        for scope in key.scopes:
            self._scope_index.setdefault(scope, set()).add(key.hash)
        return True

    async def delete(self, key: CacheKey) -> bool:
        return self._remove(key.hash)

    async def evict_matching(self, scope: str) -> int:
        """Remove every entry minted under ``scope``"""
        self._scope_generations[scope] = self._scope_generations.get(scope, 0) + 1
        hashes = self._scope_index.pop(scope, set())
        removed = 0
        for key_hash in list(hashes):
            if self._remove(key_hash):
                removed += 1
        self.evictions += removed
        return removed

    async def clear(self) -> int:
        """Clear all cache entries"""
        self._clear_generation += 1
        removed = len(self._entries)
        self._entries.clear()
        self._scope_index.clear()
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    def _remove(self, key_hash: str) -> bool:
        entry = self._entries.pop(key_hash, None)
        if entry is None:
            return False
        for scope in entry.key.scopes:
            members = self._scope_index.get(scope)
            if members is None:
                continue
            members.discard(key_hash)
            if not members:
                del self._scope_index[scope]
        return True

    def _make_room(self) -> None:
        """Remove expired entries, then the oldest, down to the target size"""
        now = self._clock()
        target = min(
            int(self.max_entries * self.eviction_target), self.max_entries - 1
        )

        expired = [h for h, entry in self._entries.items() if entry.is_expired(now)]
        for key_hash in expired:
            self._remove(key_hash)

        oldest_removed = 0
        while len(self._entries) > target and self._entries:
            key_hash = next(iter(self._entries))
            self._remove(key_hash)
            oldest_removed += 1

        logger.info(
            "Search cache trimmed",
            extra={
                "expired_removed": len(expired),
                "oldest_removed": oldest_removed,
                "remaining": len(self._entries),
                "max_entries": self.max_entries,
                "operation": "maintain_cache_size",
            },
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        now = self._clock()
        size_by_scope = {domain.value: 0 for domain in CacheDomain}
        total_age = 0.0
        for entry in self._entries.values():
            size_by_scope[entry.key.domain.value] += 1
            total_age += now - entry.stored_at

        total_entries = len(self._entries)
        lookups = self.hits + self.misses
        return {
            "total_entries": total_entries,
            "size_by_scope": size_by_scope,
            "average_age": total_age / total_entries if total_entries else 0.0,
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
            "evictions": self.evictions,
        }


__all__ = [
    "CacheEntry",
    "CacheKey",
    "CacheKeyCodec",
    "CacheDomain",
    "SearchResultCache",
]
