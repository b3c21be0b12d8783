"""Tests for wren.render.engine — shell prerendering and per-request resume."""

import anyio
import pytest

from conftest import page_context
from wren.assets.extractor import ChunkExtractor
from wren.cache.promise import FetchStatus
from wren.cache.service import CacheService
from wren.errors import ConfigurationError, FetchTimeout
from wren.render.descriptor import Placeholder
from wren.render.engine import HtmlEngine
from wren.render.resolve import Resolutions
from wren.render.tree import Boundary, h, lazy


async def _product(ctx):
    return {"id": ctx.params["id"], "name": "Lamp"}


def _product_boundary(**overrides) -> Boundary:
    options = {
        "key": lambda ctx: f"product:{ctx.params['id']}",
        "fetch": _product,
        "render": lambda p: h("p", {"class": "name"}, p["name"]),
        "fallback": h("p", {"class": "skeleton"}, "Loading..."),
        "chunk": "src/ProductCard.jsx",
    }
    options.update(overrides)
    return Boundary(**options)


def _page(*boundaries: Boundary):
    return h("main", None, h("h1", None, "Product"), *boundaries)


async def _collect(engine, descriptor, resolutions, extractor) -> list[str]:
    return [chunk.decode() async for chunk in engine.resume(descriptor, resolutions, extractor=extractor)]


class TestPrerenderShell:
    def test_prelude_has_fallback_and_essentials(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        prelude, descriptor = engine.prerender_shell(_page(_product_boundary()), extractor=extractor)
        html = prelude.decode()
        assert html.startswith("<!DOCTYPE html>")
        assert '<link rel="stylesheet" href="/assets/main.css">' in html
        assert '<script type="module" src="/assets/main.js"></script>' in html
        assert '<div id="wren-b-b0" data-wren-boundary><p class="skeleton">Loading...</p></div>' in html
        assert "</body>" not in html
        assert descriptor.document_end.startswith("</body>")

    def test_segments_split_at_boundaries(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        tree = _page(_product_boundary(), _product_boundary(id="reviews"))
        _, descriptor = engine.prerender_shell(tree, extractor=extractor)
        placeholders = [seg for seg in descriptor.segments if isinstance(seg, Placeholder)]
        assert placeholders == [Placeholder("b0"), Placeholder("reviews")]
        assert [slot.id for slot in descriptor.placeholders()] == ["b0", "reviews"]

    def test_prelude_is_deterministic(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        first, _ = engine.prerender_shell(_page(_product_boundary()), extractor=extractor)
        second, _ = engine.prerender_shell(_page(_product_boundary()), extractor=extractor)
        assert first == second

    def test_title(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        prelude, _ = engine.prerender_shell(h("p"), extractor=extractor, title="Shop & Co")
        assert b"<title>Shop &amp; Co</title>" in prelude

    def test_duplicate_id_rejected(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        tree = _page(_product_boundary(id="x"), _product_boundary(id="x"))
        with pytest.raises(ConfigurationError, match="Duplicate boundary id"):
            engine.prerender_shell(tree, extractor=extractor)

    def test_client_only_boundary_is_static(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        tree = _page(lazy(lambda _: "map", "src/Map.jsx", fallback="Map loading", ssr=False))
        prelude, descriptor = engine.prerender_shell(tree, extractor=extractor)
        assert b'<div id="wren-b-b0" data-wren-client>Map loading</div>' in prelude
        assert descriptor.placeholders() == []

    def test_generated_ids_skip_explicit_ones(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        tree = _page(_product_boundary(id="b0"), _product_boundary())
        _, descriptor = engine.prerender_shell(tree, extractor=extractor)
        assert list(descriptor.registry) == ["b0", "b1"]


class TestDescriptor:
    def test_render_complete_fills_placeholders(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        _, descriptor = engine.prerender_shell(_page(_product_boundary()), extractor=extractor)
        html = descriptor.render_complete({"b0": "<p>Lamp</p>"})
        assert '<div id="wren-b-b0" data-wren-boundary><p>Lamp</p></div>' in html
        assert html.rstrip().endswith("</html>")

    def test_to_dict(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        _, descriptor = engine.prerender_shell(_page(_product_boundary(key="product:1")), extractor=extractor)
        data = descriptor.to_dict()
        assert {"placeholder": "b0"} in data["segments"]
        slot = data["registry"]["b0"]
        assert slot["key"] == "product:1"
        assert slot["fetcher"].endswith("_product")
        assert slot["chunk"] == "src/ProductCard.jsx"
        assert set(data) == {"segments", "registry", "documentStart", "closing", "documentEnd"}


class TestResume:
    async def test_order_assets_fills_payload_end(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        _, descriptor = engine.prerender_shell(_page(_product_boundary()), extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)

        assert len(chunks) == 4
        assets, fill, payload, end = chunks
        assert '<link rel="stylesheet" href="/assets/product.css">' in assets
        assert '<script type="module" src="/assets/ProductCard.js"></script>' in assets
        assert fill.startswith('<template id="wren-f-b0"><p class="name">Lamp</p></template>')
        assert payload == (
            '<script id="__WREN_DATA__" type="application/json">'
            '{"product:42":{"id":42,"name":"Lamp"}}</script>'
        )
        assert end.startswith("</body>")

    async def test_no_asset_chunk_without_tracked_chunks(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        _, descriptor = engine.prerender_shell(_page(_product_boundary(chunk=None)), extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)
        assert chunks[0].startswith('<template id="wren-f-b0">')

    async def test_no_boundaries(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        _, descriptor = engine.prerender_shell(h("p", None, "static"), extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)
        assert chunks[0] == '<script id="__WREN_DATA__" type="application/json">{}</script>'

    async def test_fills_follow_document_order(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        async def slow(ctx):
            await anyio.sleep(0.05)
            return "slow"

        async def fast(ctx):
            return "fast"

        tree = _page(
            Boundary(key="slow", fetch=slow, render=lambda v: v, chunk=None),
            Boundary(key="fast", fetch=fast, render=lambda v: v, chunk=None),
        )
        _, descriptor = engine.prerender_shell(tree, extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)
        assert chunks[0].startswith('<template id="wren-f-b0">slow')
        assert chunks[1].startswith('<template id="wren-f-b1">fast')

    async def test_shared_key_fetched_once(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        calls = 0

        async def fetch(ctx):
            nonlocal calls
            calls += 1
            return "v"

        tree = _page(
            Boundary(key="same", fetch=fetch, render=lambda v: v),
            Boundary(key="same", fetch=fetch, render=lambda v: v.upper()),
        )
        _, descriptor = engine.prerender_shell(tree, extractor=extractor)
        await _collect(engine, descriptor, resolutions, extractor)
        assert calls == 1

    async def test_failed_fetch_renders_error_state(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        async def broken(ctx):
            raise RuntimeError("db down")

        _, descriptor = engine.prerender_shell(_page(_product_boundary(fetch=broken)), extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)
        fill = chunks[0]
        assert 'class="wren-error" data-boundary="b0" role="alert"' in fill
        # failed regions contribute neither assets nor payload
        assert chunks[1].endswith(">{}</script>")
        assert "product:42" not in resolutions.caches.promises

    async def test_custom_error_renderer(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        async def broken(ctx):
            raise RuntimeError("db down")

        boundary = _product_boundary(fetch=broken, error=lambda exc: h("p", None, f"Oops: {exc}"))
        _, descriptor = engine.prerender_shell(_page(boundary), extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)
        assert "<p>Oops: db down</p>" in chunks[0]

    async def test_render_error_is_contained(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        def explode(value):
            raise KeyError("name")

        tree = _page(_product_boundary(render=explode), Boundary(key="ok", fetch=lambda ctx: "fine", render=str))
        _, descriptor = engine.prerender_shell(tree, extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)
        assert "wren-error" in chunks[0]
        assert "fine</template>" in chunks[1]

    async def test_nested_boundary_settles_inline(
        self, engine: HtmlEngine, extractor: ChunkExtractor, resolutions: Resolutions,
    ) -> None:
        async def reviews(ctx):
            return ["great", "fine"]

        inner = Boundary(
            key="reviews:42",
            fetch=reviews,
            render=lambda items: h("ul", None, [h("li", None, r) for r in items]),
        )
        outer = _product_boundary(render=lambda p: h("section", None, p["name"], inner))
        _, descriptor = engine.prerender_shell(_page(outer), extractor=extractor)
        chunks = await _collect(engine, descriptor, resolutions, extractor)

        fill = chunks[1]
        assert '<div id="wren-b-n1" data-wren-boundary><ul><li>great</li><li>fine</li></ul></div>' in fill
        assert set(resolutions.payload) == {"product:42", "reviews:42"}

    async def test_fetch_timeout(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        async def hang(ctx):
            await anyio.sleep(0.3)

        caches = CacheService.create()
        resolutions = Resolutions(page_context(), caches, fetch_timeout=0.05)
        boundary = _product_boundary(fetch=hang)

        settled = await resolutions.settle(boundary)

        assert settled.status is FetchStatus.REJECTED
        assert isinstance(settled.error, FetchTimeout)
        assert "product:42" not in caches.promises

    async def test_cached_value_reused_across_requests(self, engine: HtmlEngine, extractor: ChunkExtractor) -> None:
        calls = 0

        async def fetch(ctx):
            nonlocal calls
            calls += 1
            return {"name": "Lamp"}

        caches = CacheService.create()
        for _ in range(2):
            resolutions = Resolutions(page_context(), caches)
            settled = await resolutions.settle(_product_boundary(fetch=fetch))
            assert settled.ok
            assert resolutions.payload == {"product:42": {"name": "Lamp"}}
        assert calls == 1
