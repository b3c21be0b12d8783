"""A bounded least-recently-used map.

Both ``get`` and ``set`` count as an access and move the key to the
most-recently-used end; ``peek`` and membership tests do not.
"""

from collections import OrderedDict
from collections.abc import Iterator
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")

_MISSING = object()


class LRUCache(Generic[K, V]):
    """Fixed-capacity map evicting the least recently accessed key."""

    __slots__ = ("_data", "capacity")

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            msg = f"LRU capacity must be at least 1, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._data: OrderedDict[K, V] = OrderedDict()

    def get(self, key: K, default: V | None = None) -> V | None:
        value = self._data.get(key, _MISSING)
        if value is _MISSING:
            return default
        self._data.move_to_end(key)
        return value  # type: ignore[return-value]

    def set(self, key: K, value: V) -> K | None:
        """Insert or replace *key*; returns the evicted key, if any."""
        if key in self._data:
            self._data.move_to_end(key)
            self._data[key] = value
            return None
        evicted = None
        if len(self._data) >= self.capacity:
            evicted, _ = self._data.popitem(last=False)
        self._data[key] = value
        return evicted

    def peek(self, key: K, default: V | None = None) -> V | None:
        """Read without touching recency."""
        return self._data.get(key, default)

    def discard(self, key: K) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[K]:
        """Keys from least to most recently used."""
        return list(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[K]:
        return iter(self._data)


class ValueCache(LRUCache[str, object]):
    """Fulfilled fetch results, keyed like the promise cache.

    Outlives the futures themselves: the shell pass fills it, the resume
    pass reads it, and it feeds the hydration payload.
    """

    __slots__ = ()
