"""Promise cache — bounded LRU of in-flight and settled data fetches.

A fetch is stored the moment it starts, before it settles, so concurrent
renders asking for the same key share one future instead of issuing a
second request. Each entry exposes its status synchronously, which lets
the renderer tell a settled boundary from a pending one without awaiting.

Usage::

    cache = PromiseCache(capacity=100)
    future = cache.get_or_create("product:42", lambda: api.product(42))
    cache.entry("product:42").status   # FetchStatus.PENDING
    await future
    cache.entry("product:42").status   # FetchStatus.FULFILLED
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from wren.cache.lru import LRUCache, ValueCache

logger = logging.getLogger("wren.cache")


class FetchStatus(StrEnum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


@dataclass(slots=True)
class CacheEntry:
    """One fetch. Mutated only by its own future's done-callback."""

    key: str
    future: asyncio.Future[Any]
    status: FetchStatus = FetchStatus.PENDING
    value: Any = None
    error: BaseException | None = field(default=None, repr=False)

    @property
    def settled(self) -> bool:
        return self.status is not FetchStatus.PENDING


class PromiseCache:
    """Bounded LRU of fetch futures with synchronous status.

    ``get`` and ``set`` both count as an access. Fulfilled values are
    copied into the companion ``ValueCache`` as they settle.
    """

    __slots__ = ("_entries", "values")

    def __init__(self, capacity: int = 100, values: ValueCache | None = None) -> None:
        self._entries: LRUCache[str, CacheEntry] = LRUCache(capacity)
        self.values = values if values is not None else ValueCache(capacity)

    @property
    def capacity(self) -> int:
        return self._entries.capacity

    def get(self, key: str) -> asyncio.Future[Any] | None:
        """The stored future for *key*, verbatim, or ``None``. Marks *key* most recently used."""
        entry = self._entries.get(key)
        return entry.future if entry is not None else None

    def set(self, key: str, future: asyncio.Future[Any]) -> CacheEntry:
        """Store *future* under *key* right away, evicting the LRU entry at capacity."""
        entry = CacheEntry(key=key, future=future)
        evicted = self._entries.set(key, entry)
        if evicted is not None:
            logger.debug("Evicted %r from promise cache", evicted)
        future.add_done_callback(lambda fut: self._settle(entry, fut))
        return entry

    def entry(self, key: str) -> CacheEntry | None:
        """Inspect an entry without changing recency."""
        return self._entries.peek(key)

    def get_or_create(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> asyncio.Future[Any]:
        """Return the future for *key*, starting ``factory()`` only if none exists.

        Must be called from a running event loop.
        """
        future = self.get(key)
        if future is not None:
            return future
        future = asyncio.ensure_future(factory())
        self.set(key, future)
        return future

    def discard(self, key: str, future: asyncio.Future[Any] | None = None) -> None:
        """Drop *key*; when *future* is given, only if it is still the stored one."""
        entry = self._entries.peek(key)
        if entry is None or (future is not None and entry.future is not future):
            return
        self._entries.discard(key)

    def clear(self) -> None:
        self._entries.clear()
        self.values.clear()

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return self._entries.keys()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _settle(self, entry: CacheEntry, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            entry.status = FetchStatus.REJECTED
            entry.error = asyncio.CancelledError()
            self.discard(entry.key, future)
            return
        error = future.exception()  # also marks the exception as retrieved
        if error is not None:
            entry.status = FetchStatus.REJECTED
            entry.error = error
            return
        entry.status = FetchStatus.FULFILLED
        entry.value = future.result()
        self.values.set(entry.key, entry.value)
