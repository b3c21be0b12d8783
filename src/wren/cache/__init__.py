"""Process-wide caches: fetch promises, fulfilled values, and prerendered shells."""

from wren.cache.lru import LRUCache, ValueCache
from wren.cache.prerender import PrerenderCache, PrerenderCacheEntry
from wren.cache.promise import CacheEntry, FetchStatus, PromiseCache
from wren.cache.service import CacheService

__all__ = [
    "CacheEntry",
    "CacheService",
    "FetchStatus",
    "LRUCache",
    "PrerenderCache",
    "PrerenderCacheEntry",
    "PromiseCache",
    "ValueCache",
]
