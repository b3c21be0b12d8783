"""Process-lifetime cache of prerendered shells.

Each canonical path maps to one frozen ``PrerenderCacheEntry``. Entries
are replaced whole and never edited, so a reader sees either the old
entry or the new one. There is no TTL; ``invalidate`` and ``clear`` are
for operators and tests.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import anyio

if TYPE_CHECKING:
    from wren.render.descriptor import ResumeDescriptor

logger = logging.getLogger("wren.cache")


@dataclass(frozen=True, slots=True)
class PrerenderCacheEntry:
    cache_key: str
    prelude: bytes
    descriptor: ResumeDescriptor
    created_at: float = field(default_factory=time.time)


class PrerenderCache:
    """Canonical path -> ``PrerenderCacheEntry``, plus per-key in-flight markers.

    ``claim`` lets the first cold request for a key prerender while later
    ones wait::

        event = cache.claim(key)
        if event is None:          # we own the key
            try:
                ...prerender, cache.put(entry)...
            finally:
                cache.release(key)
        else:
            await event.wait()     # then cache.get(key)
    """

    __slots__ = ("_entries", "_inflight")

    def __init__(self) -> None:
        self._entries: dict[str, PrerenderCacheEntry] = {}
        self._inflight: dict[str, anyio.Event] = {}

    def get(self, key: str) -> PrerenderCacheEntry | None:
        return self._entries.get(key)

    def put(self, entry: PrerenderCacheEntry) -> None:
        self._entries[entry.cache_key] = entry

    def invalidate(self, key: str) -> bool:
        """Drop one entry; True if it existed."""
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info("Invalidated prerendered shell for %s", key)
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def claim(self, key: str) -> anyio.Event | None:
        """Mark *key* in flight. Returns ``None`` to the owner, else the event to wait on."""
        event = self._inflight.get(key)
        if event is not None:
            return event
        self._inflight[key] = anyio.Event()
        return None

    def release(self, key: str) -> None:
        event = self._inflight.pop(key, None)
        if event is not None:
            event.set()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
