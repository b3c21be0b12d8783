"""Per-request boundary resolution.

``Resolutions`` starts and awaits the data fetches of one request through
the shared promise cache. Identical keys share one fetch across
concurrent requests; a timeout or a failure settles the boundary as
rejected and evicts the entry so the next request tries again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import anyio

from wren._internal.invoke import invoke
from wren.cache.promise import FetchStatus
from wren.cache.service import CacheService
from wren.context import PageContext
from wren.errors import FetchTimeout
from wren.render.tree import Boundary

logger = logging.getLogger("wren.render")


@dataclass(frozen=True, slots=True)
class Settled:
    status: FetchStatus
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.FULFILLED


class Resolutions:
    """The fetch results of one render.

    ``payload`` collects every fulfilled keyed value, in settle order,
    for the hydration script.
    """

    __slots__ = ("caches", "ctx", "fetch_timeout", "payload")

    def __init__(
        self,
        ctx: PageContext,
        caches: CacheService,
        *,
        fetch_timeout: float | None = 10.0,
    ) -> None:
        self.ctx = ctx
        self.caches = caches
        self.fetch_timeout = fetch_timeout
        self.payload: dict[str, Any] = {}

    def _factory(self, boundary: Boundary):
        fetch = boundary.fetch
        ctx = self.ctx

        async def run() -> Any:
            return await invoke(fetch, ctx)

        return run

    def prime(self, boundary: Boundary) -> None:
        """Start *boundary*'s fetch without waiting for it."""
        if boundary.fetch is None or not boundary.ssr:
            return
        key = boundary.resolve_key(self.ctx)
        if key is None or key in self.caches.values:
            return
        self.caches.promises.get_or_create(key, self._factory(boundary))

    async def settle(self, boundary: Boundary) -> Settled:
        """Wait for *boundary*'s data. Never raises except on cancellation."""
        if boundary.fetch is None:
            return Settled(FetchStatus.FULFILLED)

        try:
            key = boundary.resolve_key(self.ctx)
        except Exception as exc:
            logger.warning("Boundary key failed: %s", exc)
            return Settled(FetchStatus.REJECTED, error=exc)

        if key is None:
            # unkeyed fetch: not shared, not cached, not hydrated
            return await self._settle_unkeyed(boundary)

        if key in self.caches.values:
            value = self.caches.values.get(key)
            self.payload[key] = value
            return Settled(FetchStatus.FULFILLED, value)

        promises = self.caches.promises
        future = promises.get_or_create(key, self._factory(boundary))
        try:
            with anyio.fail_after(self.fetch_timeout):
                value = await asyncio.shield(future)
        except TimeoutError:
            promises.discard(key, future)
            error = FetchTimeout(key, self.fetch_timeout or 0)
            logger.warning("%s", error)
            return Settled(FetchStatus.REJECTED, error=error)
        except Exception as exc:
            promises.discard(key, future)
            logger.warning("Fetch for %r failed: %s", key, exc)
            return Settled(FetchStatus.REJECTED, error=exc)

        self.payload[key] = value
        return Settled(FetchStatus.FULFILLED, value)

    async def _settle_unkeyed(self, boundary: Boundary) -> Settled:
        try:
            with anyio.fail_after(self.fetch_timeout):
                value = await invoke(boundary.fetch, self.ctx)
        except TimeoutError:
            error = FetchTimeout("<unkeyed>", self.fetch_timeout or 0)
            logger.warning("%s", error)
            return Settled(FetchStatus.REJECTED, error=error)
        except Exception as exc:
            logger.warning("Unkeyed fetch failed: %s", exc)
            return Settled(FetchStatus.REJECTED, error=exc)
        return Settled(FetchStatus.FULFILLED, value)
