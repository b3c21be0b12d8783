"""Shared fixtures for wren tests."""

import pytest

from wren.assets.extractor import ChunkExtractor
from wren.assets.manifest import CategorizedManifest, ManifestLoader
from wren.cache.service import CacheService
from wren.config import AppConfig
from wren.context import PageContext
from wren.http.request import Request
from wren.render.document import Document, create_environment
from wren.render.engine import HtmlEngine
from wren.render.resolve import Resolutions
from wren.routing.route import Route
from wren.routing.router import Router

MANIFEST = {
    "essential": {
        "src/main.jsx": {"file": "main.js", "css": ["main.css"], "isEntry": True},
    },
    "ssrTrue": {
        "src/ProductCard.jsx": {"file": "ProductCard.js", "css": ["product.css"]},
    },
    "ssrFalse": {
        "src/Map.jsx": {"file": "Map.js"},
    },
}


@pytest.fixture
def manifest() -> CategorizedManifest:
    return CategorizedManifest.from_dict(MANIFEST)


@pytest.fixture
def loader(manifest: CategorizedManifest) -> ManifestLoader:
    return ManifestLoader.from_manifest(manifest)


@pytest.fixture
def extractor(loader: ManifestLoader) -> ChunkExtractor:
    ext = ChunkExtractor(loader)
    ext.initialize()
    return ext


@pytest.fixture
def engine() -> HtmlEngine:
    return HtmlEngine(Document(create_environment(AppConfig())))


@pytest.fixture
def caches() -> CacheService:
    return CacheService.create()


def page_context(path: str = "/product/42") -> PageContext:
    """A request-side PageContext for ``/product/{id:int}``."""
    router = Router()
    router.add(Route("/product", children=(Route("{id:int}", page=lambda ctx: None),)))
    router.add(Route("/", page=lambda ctx: None))
    router.compile()
    match = router.match("GET", path)
    request = Request.from_asgi({"method": "GET", "path": path, "headers": [], "query_string": b""})
    return PageContext.for_request(request.with_params(match.path_params), match)


@pytest.fixture
def resolutions(caches: CacheService) -> Resolutions:
    return Resolutions(page_context(), caches, fetch_timeout=1.0)
