"""End-to-end tests for wren.App through the ASGI interface."""

import json
from pathlib import Path

import pytest

from wren import App, AppConfig, Boundary, ManifestError, NotFound, Route, get_request, h, lazy, route_data
from wren.http.response import Response
from wren.render.orchestrator import PRERENDER_HEADER
from wren.testing import TestClient

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
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / "asset-categories.json"
    path.write_text(json.dumps(MANIFEST))
    return path


def _product_app(manifest_path: Path, calls: list[int]) -> App:
    app = App(AppConfig(manifest_path=manifest_path))

    async def load_product(ctx):
        calls.append(ctx.params["id"])
        return {"id": ctx.params["id"], "name": "Desk Lamp", "price": 49}

    @app.page("/product/{id:int}", title="Product")
    def product(ctx):
        return h(
            "main", {"class": "product"},
            h("h1", None, "Product"),
            Boundary(
                key=lambda ctx: f"product:{ctx.params['id']}",
                fetch=load_product,
                render=lambda p: h("article", {"class": "card"}, h("h2", None, p["name"]), f"${p['price']}"),
                fallback=h("div", {"class": "skeleton"}, "Loading..."),
                chunk="src/ProductCard.jsx",
            ),
            lazy(lambda _: None, "src/Map.jsx", fallback="Map loads in the browser", ssr=False),
        )

    return app


class TestProductScenario:
    async def test_first_request_prerenders_and_streams_product(self, manifest_path: Path) -> None:
        calls: list[int] = []
        app = _product_app(manifest_path, calls)

        async with TestClient(app) as client:
            result = await client.stream("/product/42")

        assert result.status == 200
        assert result.completed
        assert result.headers[PRERENDER_HEADER] == "miss"
        assert result.headers["content-type"] == "text/html; charset=utf-8"

        shell, *rest = result.chunks
        assert b"<title>Product</title>" in shell
        assert b'<script type="module" src="/assets/main.js"></script>' in shell
        assert b"Loading..." in shell
        assert b"Desk Lamp" not in shell
        # dynamic chunks never reach the shell
        assert b"ProductCard.js" not in shell
        assert b"Map.js" not in result.body

        tail = b"".join(rest).decode()
        assert tail.index("ProductCard.js") < tail.index("Desk Lamp") < tail.index("__WREN_DATA__")
        assert tail.rstrip().endswith("</html>")

        payload = tail.split('type="application/json">', 1)[1].split("</script>", 1)[0]
        assert json.loads(payload) == {"product:42": {"id": 42, "name": "Desk Lamp", "price": 49}}
        assert calls == [42]

    async def test_second_request_reuses_prelude(self, manifest_path: Path) -> None:
        calls: list[int] = []
        app = _product_app(manifest_path, calls)

        async with TestClient(app) as client:
            first = await client.stream("/product/42")
            second = await client.stream("/product/42")

        assert second.headers[PRERENDER_HEADER] == "hit"
        assert second.chunks[0] == first.chunks[0]
        assert b"Desk Lamp" in second.body
        assert app.orchestrator.prerender_passes == 1
        # the fulfilled value is reused from the value cache
        assert calls == [42]

    async def test_other_product_gets_its_own_data(self, manifest_path: Path) -> None:
        calls: list[int] = []
        app = _product_app(manifest_path, calls)

        async with TestClient(app) as client:
            await client.get("/product/42")
            response = await client.get("/product/7")

        assert '"product:7":{"id":7' in response.text
        assert "product:42" not in response.text
        assert calls == [42, 7]


class TestRouteTree:
    async def test_nested_routes_and_route_data(self) -> None:
        async def load_user(ctx):
            return {"name": f"user-{ctx.params['user_id']}", "tab": ctx.query.get("tab", "")}

        def profile(ctx):
            return h("section", None, route_data(lambda u: h("p", None, u["name"], " ", u["tab"])))

        app = App(routes=[
            Route("/users", children=(
                Route("{user_id:int}", page=profile, fetch=load_user, title="Profile"),
            )),
        ])
        async with TestClient(app) as client:
            response = await client.get("/users/3?tab=posts")

        assert response.status == 200
        assert "<p>user-3 posts</p>" in response.text
        assert '"route:/users/3?tab=posts"' in response.text

    async def test_request_available_to_fetchers(self) -> None:
        seen: list[str] = []

        async def fetch(ctx):
            seen.append(get_request().headers.get("x-trace", ""))
            return "ok"

        app = App()
        app.page("/")(lambda ctx: Boundary(key="k", fetch=fetch, render=str))

        async with TestClient(app) as client:
            await client.get("/", headers={"X-Trace": "abc"})

        assert seen == ["abc"]

    async def test_async_page_builder(self) -> None:
        app = App()

        @app.page("/")
        async def home(ctx):
            return h("h1", None, "Home")

        async with TestClient(app) as client:
            response = await client.get("/")
        assert "<h1>Home</h1>" in response.text


class TestErrorHandlers:
    async def test_custom_404(self) -> None:
        app = App()
        app.page("/")(lambda ctx: "home")

        @app.error(404)
        def not_found(request):
            return f"Nothing at {request.path}"

        async with TestClient(app) as client:
            response = await client.get("/missing")

        assert response.status == 404
        assert response.text == "Nothing at /missing"

    async def test_handler_by_exception_type(self) -> None:
        app = App()
        app.page("/")(lambda ctx: "home")

        @app.error(NotFound)
        async def not_found(request, exc):
            return Response(body=f"gone: {exc.status}", status=410)

        async with TestClient(app) as client:
            response = await client.get("/missing")

        assert response.status == 410
        assert response.text == "gone: 404"

    async def test_custom_500_keeps_error_status(self) -> None:
        def broken(ctx):
            raise ValueError("bad page")

        app = App()
        app.page("/")(broken)

        @app.error(500)
        def server_error(request):
            return "Sorry"

        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.status == 500
        assert response.text == "Sorry"

    async def test_500_in_debug_shows_traceback(self) -> None:
        def broken(ctx):
            raise ValueError("bad page")

        app = App(AppConfig(debug=True))
        app.page("/")(broken)

        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.status == 500
        assert "ValueError" in response.text

    async def test_500_hides_details_in_production(self) -> None:
        def broken(ctx):
            raise ValueError("secret")

        app = App()
        app.page("/")(broken)

        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.status == 500
        assert "secret" not in response.text


class TestLifecycle:
    async def test_hooks_run_in_order(self) -> None:
        events: list[str] = []
        app = App()
        app.page("/")(lambda ctx: "home")

        @app.on_startup
        def start():
            events.append("start")

        @app.on_shutdown
        async def stop():
            events.append("stop")

        async with TestClient(app) as client:
            await client.get("/")
            events.append("request")

        assert events == ["start", "request", "stop"]

    async def test_lifespan_protocol(self) -> None:
        app = App()
        app.page("/")(lambda ctx: "home")
        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[str] = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)

        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    async def test_startup_failure_reported(self) -> None:
        app = App()
        app.page("/")(lambda ctx: "home")

        @app.on_startup
        def fail():
            raise RuntimeError("db unreachable")

        messages = iter([{"type": "lifespan.startup"}])
        sent: list[dict] = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)

        assert sent == [{"type": "lifespan.startup.failed", "message": "db unreachable"}]

    def test_frozen_app_rejects_routes(self) -> None:
        app = App()
        app.page("/")(lambda ctx: "home")
        app._ensure_frozen()
        with pytest.raises(RuntimeError, match="Cannot modify"):
            app.page("/late")(lambda ctx: "late")


class TestDocument:
    async def test_route_meta_in_head(self) -> None:
        app = App(routes=[
            Route("/shop", meta=(
                {"name": "description", "content": "Wren shop"},
                {"property": "og:site_name", "content": "Wren & Co"},
            ), children=(
                Route("{id:int}", page=lambda ctx: h("p", None, "lamp"), meta=(
                    {"name": "description", "content": "Desk lamp"},
                )),
            )),
        ])
        async with TestClient(app) as client:
            result = await client.stream("/shop/1")

        head = result.chunks[0].decode().split("</head>", 1)[0]
        assert '<meta name="description" content="Desk lamp">' in head
        assert "Wren shop" not in head
        assert '<meta property="og:site_name" content="Wren &amp; Co">' in head

    async def test_template_override_and_globals(self, tmp_path: Path) -> None:
        (tmp_path / "document.html").write_text(
            "<!DOCTYPE html><html><head>{{ head }}</head>"
            '<body data-brand="{{ brand }}"><div id="root">{{ app }}</div></body></html>'
        )
        app = App(AppConfig(template_dir=tmp_path))
        app.template_global("brand", "wren & co")
        app.page("/")(lambda ctx: h("p", None, "hi"))

        async with TestClient(app) as client:
            response = await client.get("/")

        assert '<body data-brand="wren &amp; co"><div id="root"><p>hi</p></div>' in response.text
        assert response.text.endswith("</body></html>")

    async def test_missing_manifest_fails_at_startup(self, tmp_path: Path) -> None:
        app = App(AppConfig(manifest_path=tmp_path / "missing.json"))
        app.page("/")(lambda ctx: "home")
        with pytest.raises(ManifestError, match="not found"):
            app._ensure_frozen()
