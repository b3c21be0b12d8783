"""Render orchestration: route match, shell cache, resume, ordered stream.

Per path the shell moves ``MISS -> PRERENDERING -> CACHED``. The first
request for a path prerenders inline and streams from that fresh pass;
later requests replay the cached descriptor against their own data.

The ``x-wren-prerender`` response header reports which path was taken:

- ``miss``: this request prerendered the shell and cached it
- ``hit``: the cached prelude was reused
- ``bypass``: caching is off (``debug`` or ``prerender_cache=False``)
- ``fallback``: prerendering failed; an uncached shell was rendered
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator

import anyio

from wren._internal.invoke import invoke
from wren.assets.extractor import ChunkExtractor
from wren.assets.manifest import ManifestLoader
from wren.cache.prerender import PrerenderCacheEntry
from wren.cache.service import CacheService
from wren.config import AppConfig
from wren.context import PageContext
from wren.errors import NotFound, PrerenderError
from wren.http.request import Request
from wren.http.response import StreamingResponse
from wren.render.descriptor import ResumeDescriptor
from wren.render.engine import RenderEngine
from wren.render.resolve import Resolutions
from wren.routing.route import RouteMatch
from wren.routing.router import Router

logger = logging.getLogger("wren.render")

PRERENDER_HEADER = "x-wren-prerender"

_SLASHES = re.compile(r"/{2,}")


def cache_key_for(path: str) -> str:
    """Canonical pathname: duplicate slashes collapsed, no trailing slash except root."""
    key = _SLASHES.sub("/", path or "/")
    if not key.startswith("/"):
        key = f"/{key}"
    if len(key) > 1:
        key = key.rstrip("/") or "/"
    return key


class RenderOrchestrator:
    """Drives one page render from request to byte stream.

    ``prerender_passes`` counts shell prerenders (cached or not) and
    ``fallback_renders`` counts renders that degraded after a prerender
    failure.
    """

    def __init__(
        self,
        router: Router,
        caches: CacheService,
        loader: ManifestLoader,
        engine: RenderEngine,
        config: AppConfig,
    ) -> None:
        self.router = router
        self.caches = caches
        self.loader = loader
        self.engine = engine
        self.config = config
        self.prerender_passes = 0
        self.fallback_renders = 0

    def extractor(self) -> ChunkExtractor:
        extractor = ChunkExtractor(
            self.loader,
            public_path=self.config.public_path,
            modulepreload=self.config.modulepreload,
        )
        extractor.initialize()
        return extractor

    async def render(self, request: Request) -> StreamingResponse:
        """Render *request*. Raises ``HTTPError`` (before any byte) for unknown paths."""
        match = self.router.match(request.method, request.path)
        if match.route.page is None:
            raise NotFound(f"No page at {request.path!r}")

        key = cache_key_for(request.path)
        extractor = self.extractor()
        resolutions = Resolutions(
            PageContext.for_request(request.with_params(match.path_params), match),
            self.caches,
            fetch_timeout=self.config.fetch_timeout,
        )

        prelude, descriptor, state = await self._shell(key, match, extractor, resolutions)
        logger.debug("%s %s: shell %s", request.method, request.path, state)

        return StreamingResponse(
            chunks=self._stream(prelude, descriptor, resolutions, extractor),
            headers=((PRERENDER_HEADER, state),),
        )

    async def _shell(
        self,
        key: str,
        match: RouteMatch,
        extractor: ChunkExtractor,
        resolutions: Resolutions,
    ) -> tuple[bytes, ResumeDescriptor, str]:
        if not self.config.use_prerender_cache:
            prelude, descriptor = await self._prerender_or_fallback(key, match, extractor, resolutions)
            return prelude, descriptor, "bypass"

        cache = self.caches.prerender
        entry = cache.get(key)
        if entry is not None:
            return entry.prelude, entry.descriptor, "hit"

        if self.config.prerender_single_flight:
            event = cache.claim(key)
            if event is not None:
                await event.wait()
                entry = cache.get(key)
                if entry is not None:
                    return entry.prelude, entry.descriptor, "hit"
                # the first pass failed; render our own shell without caching
                prelude, descriptor = await self._prerender_or_fallback(key, match, extractor, resolutions)
                return prelude, descriptor, "fallback"

        try:
            try:
                prelude, descriptor = await self._prerender(key, match, extractor, resolutions)
            except PrerenderError as exc:
                logger.error("Prerender of %s failed, rendering uncached: %s", key, exc)
                self.fallback_renders += 1
                prelude, descriptor = await self._render_shell(key, match, extractor, resolutions)
                return prelude, descriptor, "fallback"
            cache.put(PrerenderCacheEntry(cache_key=key, prelude=prelude, descriptor=descriptor))
            return prelude, descriptor, "miss"
        finally:
            if self.config.prerender_single_flight:
                cache.release(key)

    async def _prerender_or_fallback(
        self,
        key: str,
        match: RouteMatch,
        extractor: ChunkExtractor,
        resolutions: Resolutions,
    ) -> tuple[bytes, ResumeDescriptor]:
        try:
            return await self._prerender(key, match, extractor, resolutions)
        except PrerenderError as exc:
            logger.error("Prerender of %s failed, rendering uncached: %s", key, exc)
            self.fallback_renders += 1
            return await self._render_shell(key, match, extractor, resolutions)

    async def _prerender(
        self,
        key: str,
        match: RouteMatch,
        extractor: ChunkExtractor,
        resolutions: Resolutions,
    ) -> tuple[bytes, ResumeDescriptor]:
        """One bounded prerender pass. Any failure becomes ``PrerenderError``."""
        self.prerender_passes += 1
        try:
            with anyio.fail_after(self.config.prerender_timeout):
                return await self._render_shell(key, match, extractor, resolutions)
        except TimeoutError as exc:
            msg = f"Prerender of {key} exceeded {self.config.prerender_timeout:g}s"
            raise PrerenderError(msg) from exc
        except Exception as exc:
            msg = f"Prerender of {key} failed: {exc}"
            raise PrerenderError(msg) from exc

    async def _render_shell(
        self,
        key: str,
        match: RouteMatch,
        extractor: ChunkExtractor,
        resolutions: Resolutions,
    ) -> tuple[bytes, ResumeDescriptor]:
        tree = await invoke(match.route.page, PageContext.for_shell(key, match))
        prelude, descriptor = self.engine.prerender_shell(
            tree, extractor=extractor, title=match.title, meta=match.meta,
        )
        # start the fetches now so resume only waits on them
        for slot in descriptor.placeholders():
            resolutions.prime(slot.boundary)
        return prelude, descriptor

    async def _stream(
        self,
        prelude: bytes,
        descriptor: ResumeDescriptor,
        resolutions: Resolutions,
        extractor: ChunkExtractor,
    ) -> AsyncIterator[bytes]:
        yield prelude
        async for chunk in self.engine.resume(descriptor, resolutions, extractor=extractor):
            yield chunk
