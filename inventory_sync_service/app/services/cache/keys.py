"""
Search cache key derivation.

A cache key is a pure function of the query domain and its normalized filter
and option parameters. Alongside the hash, every key carries the scope tags it
was minted under (owner, category, price bracket, domain-wide); the cache
indexes entries by those tags so invalidation never has to scan the keyspace.
"""

import hashlib
import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple


class CacheDomain(str, Enum):
    """Query families whose results are cached"""

    VENDOR_SEARCH = "vendor_search"
    PRODUCT_SEARCH = "product_search"
    VENDOR_PRODUCTS = "vendor_products"


@dataclass(frozen=True)
class PriceBracket:
    lower: float
    upper: float

    @property
    def label(self) -> str:
        upper = "max" if math.isinf(self.upper) else f"{self.upper:g}"
        return f"{self.lower:g}-{upper}"

    def contains(self, price: float) -> bool:
        return self.lower <= price < self.upper

    def overlaps(self, low: float, high: float) -> bool:
        return self.lower <= high and low < self.upper


# Overlapping so prices near a boundary land in more than one bracket
PRICE_BRACKETS: Tuple[PriceBracket, ...] = (
    PriceBracket(0, 10),
    PriceBracket(5, 25),
    PriceBracket(20, 50),
    PriceBracket(40, 100),
    PriceBracket(80, 250),
    PriceBracket(200, 500),
    PriceBracket(400, 1000),
    PriceBracket(800, math.inf),
)

# Filter names as they appear in queries, snake_case or camelCase
_VENDOR_FILTERS = ("vendor_id", "vendorId")
_CATEGORY_FILTERS = ("category",)
_MIN_PRICE_FILTERS = ("min_price", "minPrice")
_MAX_PRICE_FILTERS = ("max_price", "maxPrice")


def brackets_for_price(price: float) -> List[PriceBracket]:
    """Every bracket containing ``price``"""
    return [bracket for bracket in PRICE_BRACKETS if bracket.contains(price)]


def brackets_for_range(
    min_price: Optional[float], max_price: Optional[float]
) -> List[PriceBracket]:
    """Every bracket overlapping the inclusive query range"""
    low = 0.0 if min_price is None else float(min_price)
    high = math.inf if max_price is None else float(max_price)
    return [bracket for bracket in PRICE_BRACKETS if bracket.overlaps(low, high)]


def domain_scope(domain: CacheDomain) -> str:
    return f"{domain.value}:*"


def vendor_scope(domain: CacheDomain, vendor_id: str) -> str:
    return f"{domain.value}:vendor={vendor_id}"


def category_scope(domain: CacheDomain, category: str) -> str:
    return f"{domain.value}:category={category}"


def price_scope(domain: CacheDomain, bracket: PriceBracket) -> str:
    return f"{domain.value}:price={bracket.label}"


def normalize(value: Any) -> Any:
    """Drop ``None`` mapping fields recursively and sort mapping keys"""
    if isinstance(value, Mapping):
        return {
            str(key): normalize(item)
            for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))
            if item is not None
        }
    if isinstance(value, (list, tuple)):
        return [normalize(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class CacheKey:
    domain: CacheDomain
    normalized_params: str
    hash: str
    scopes: FrozenSet[str]

    def __str__(self) -> str:
        return self.hash


def _first(filters: Mapping[str, Any], names: Tuple[str, ...]) -> Any:
    for name in names:
        if filters.get(name) is not None:
            return filters[name]
    return None


class CacheKeyCodec:
    """Derives cache keys and their scope tags from query parameters"""

    hash_length = 16

    def derive_key(
        self,
        domain: CacheDomain,
        filters: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CacheKey:
        domain = CacheDomain(domain)
        params = normalize({"filters": filters or {}, "options": options or {}})
        canonical = json.dumps(
            {"domain": domain.value, "params": params},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return CacheKey(
            domain=domain,
            normalized_params=canonical,
            hash=digest[: self.hash_length],
            scopes=frozenset(self.scopes_for(domain, params["filters"])),
        )

    def scopes_for(self, domain: CacheDomain, filters: Dict[str, Any]) -> List[str]:
        scopes = [domain_scope(domain)]

        vendor_id = _first(filters, _VENDOR_FILTERS)
        if vendor_id is not None:
            scopes.append(vendor_scope(domain, str(vendor_id)))

        category = _first(filters, _CATEGORY_FILTERS)
        if category is not None:
            scopes.append(category_scope(domain, str(category)))

        min_price = _first(filters, _MIN_PRICE_FILTERS)
        max_price = _first(filters, _MAX_PRICE_FILTERS)
        if min_price is not None or max_price is not None:
            scopes.extend(
                price_scope(domain, bracket)
                for bracket in brackets_for_range(min_price, max_price)
            )

        return scopes
