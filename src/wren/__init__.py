"""Wren — a resumable streaming page renderer.

Pages are prerendered once per path into a cached shell, then resumed
per request: the shell streams immediately and async boundaries are
filled in as their data arrives. Build-time asset classification keeps
code that only async boundaries need out of the shell.

Basic usage::

    from wren import App, Boundary, h

    app = App()

    @app.page("/product/{id:int}")
    def product(ctx):
        return h("main", None, Boundary(
            key=lambda ctx: f"product:{ctx.params['id']}",
            fetch=load_product,
            render=lambda p: h("h1", None, p["name"]),
            fallback=h("p", None, "Loading..."),
        ))

    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "Boundary",
    "CacheService",
    "ConfigurationError",
    "HTTPError",
    "ManifestError",
    "MethodNotAllowed",
    "NotFound",
    "PageContext",
    "PrerenderError",
    "Request",
    "Response",
    "Route",
    "StreamingResponse",
    "WrenError",
    "fragment",
    "get_request",
    "h",
    "lazy",
    "route_data",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import wren`` fast while providing a clean top-level API.
    """
    if name == "App":
        from wren.app import App

        return App

    if name == "AppConfig":
        from wren.config import AppConfig

        return AppConfig

    if name == "Route":
        from wren.routing.route import Route

        return Route

    if name == "Request":
        from wren.http.request import Request

        return Request

    if name in ("Response", "StreamingResponse"):
        from wren.http import response as _resp

        return getattr(_resp, name)

    if name in ("Boundary", "fragment", "h", "lazy", "route_data"):
        from wren.render import tree as _tree

        return getattr(_tree, name)

    if name == "CacheService":
        from wren.cache.service import CacheService

        return CacheService

    if name in ("PageContext", "get_request"):
        from wren import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "ManifestError",
        "MethodNotAllowed",
        "NotFound",
        "PrerenderError",
        "WrenError",
    ):
        from wren import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
