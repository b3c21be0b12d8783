"""Tests for wren.cache — LRU ordering, fetch dedup, and synchronous status."""

import asyncio

import pytest

from wren.cache.lru import LRUCache, ValueCache
from wren.cache.promise import FetchStatus, PromiseCache


def _done(value: object) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


class TestLRUCache:
    def test_evicts_least_recently_used(self) -> None:
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        evicted = cache.set("c", 3)
        assert evicted == "a"
        assert "a" not in cache
        assert len(cache) == 2

    def test_get_moves_to_most_recent(self) -> None:
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a") == 1
        cache.set("c", 3)
        assert cache.keys() == ["a", "c"]

    def test_peek_and_contains_do_not_touch_order(self) -> None:
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.peek("a") == 1
        assert "a" in cache
        cache.set("c", 3)
        assert "a" not in cache

    def test_reset_replaces_and_moves_to_most_recent(self) -> None:
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.set("a", 10) is None
        assert cache.keys() == ["b", "a"]
        assert cache.peek("a") == 10

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            LRUCache(0)

    def test_value_cache_is_bounded(self) -> None:
        values = ValueCache(1)
        values.set("x", 1)
        values.set("y", 2)
        assert list(values) == ["y"]


class TestPromiseCacheLRU:
    async def test_hundred_and_first_key_evicts_least_recent(self) -> None:
        cache = PromiseCache(capacity=100)
        for i in range(1, 101):
            cache.set(f"k{i}", _done(i))

        assert cache.get("k1") is not None
        cache.set("k101", _done(101))

        assert len(cache) == 100
        assert "k1" in cache
        assert "k2" not in cache
        assert "k101" in cache

    async def test_get_returns_stored_future_verbatim(self) -> None:
        cache = PromiseCache()
        future = _done("v")
        cache.set("k", future)
        assert cache.get("k") is future

    async def test_get_missing_is_none(self) -> None:
        assert PromiseCache().get("nope") is None

    async def test_never_exceeds_capacity(self) -> None:
        cache = PromiseCache(capacity=3)
        for i in range(10):
            cache.set(f"k{i}", _done(i))
            assert len(cache) <= 3


class TestPromiseCacheStatus:
    async def test_pending_until_settled(self) -> None:
        cache = PromiseCache()
        future = asyncio.get_running_loop().create_future()
        entry = cache.set("k", future)
        assert entry.status is FetchStatus.PENDING

        future.set_result({"id": 1})
        await asyncio.sleep(0)

        assert entry.status is FetchStatus.FULFILLED
        assert entry.value == {"id": 1}
        assert cache.values.peek("k") == {"id": 1}

    async def test_rejected_keeps_error(self) -> None:
        cache = PromiseCache()
        future = asyncio.get_running_loop().create_future()
        entry = cache.set("k", future)

        future.set_exception(RuntimeError("boom"))
        await asyncio.sleep(0)

        assert entry.status is FetchStatus.REJECTED
        assert isinstance(entry.error, RuntimeError)
        assert "k" not in cache.values

    async def test_cancelled_fetch_is_dropped(self) -> None:
        cache = PromiseCache()
        future = asyncio.get_running_loop().create_future()
        cache.set("k", future)
        future.cancel()
        await asyncio.sleep(0)
        assert "k" not in cache


class TestGetOrCreate:
    async def test_concurrent_identical_keys_fetch_once(self) -> None:
        cache = PromiseCache()
        calls = 0
        release = asyncio.Event()

        async def fetch() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "data"

        futures = [cache.get_or_create("product:42", fetch) for _ in range(5)]
        assert all(f is futures[0] for f in futures)

        release.set()
        results = await asyncio.gather(*futures)

        assert calls == 1
        assert results == ["data"] * 5

    async def test_distinct_keys_fetch_separately(self) -> None:
        cache = PromiseCache()
        seen: list[str] = []

        def factory(key: str):
            async def fetch() -> str:
                seen.append(key)
                return key

            return fetch

        a = cache.get_or_create("a", factory("a"))
        b = cache.get_or_create("b", factory("b"))
        assert await a == "a"
        assert await b == "b"
        assert sorted(seen) == ["a", "b"]

    async def test_discard_ignores_replaced_future(self) -> None:
        cache = PromiseCache()
        old = _done(1)
        new = _done(2)
        cache.set("k", old)
        cache.set("k", new)
        cache.discard("k", old)
        assert cache.get("k") is new

    async def test_clear_empties_values_too(self) -> None:
        cache = PromiseCache()
        cache.set("k", _done(1))
        await asyncio.sleep(0)
        cache.clear()
        assert len(cache) == 0
        assert len(cache.values) == 0
