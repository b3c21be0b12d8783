"""Holder of the process-wide caches.

The app builds one ``CacheService`` (or accepts one from the caller) and
hands it to the orchestrator, so tests and embedders can supply their own
instead of sharing module globals.
"""

from dataclasses import dataclass

from wren.cache.lru import ValueCache
from wren.cache.prerender import PrerenderCache
from wren.cache.promise import PromiseCache


@dataclass(frozen=True, slots=True)
class CacheService:
    prerender: PrerenderCache
    promises: PromiseCache

    @property
    def values(self) -> ValueCache:
        return self.promises.values

    @classmethod
    def create(cls, capacity: int = 100) -> "CacheService":
        return cls(prerender=PrerenderCache(), promises=PromiseCache(capacity))

    def clear(self) -> None:
        """Empty every cache (tests, deploy hooks)."""
        self.prerender.clear()
        self.promises.clear()
