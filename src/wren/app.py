"""Wren application class.

Mutable during setup (route registration, error handlers, hooks).
Frozen at runtime when app.run() or __call__() is first invoked.
"""

import inspect
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from wren._internal.asgi import Receive, Scope, Send
from wren._internal.types import ErrorHandler, Fetcher, PageBuilder
from wren.assets.manifest import ManifestLoader
from wren.cache.service import CacheService
from wren.config import AppConfig
from wren.render.document import Document, create_environment
from wren.render.engine import HtmlEngine, RenderEngine
from wren.render.orchestrator import RenderOrchestrator
from wren.routing.route import Route
from wren.routing.router import Router
from wren.server.handler import handle_request


class App:
    """The wren application.

    Routes are a plain tree of ``Route`` objects, added up front or with
    the ``@app.page`` decorator::

        app = App(AppConfig(manifest_path="build/.vite/asset-categories.json"))

        @app.page("/product/{id:int}", title="Product")
        def product(ctx):
            return h("main", None, Boundary(...))

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the app.
    """

    __slots__ = (
        "_caches",
        "_engine",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_orchestrator",
        "_pending_routes",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "_template_globals",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        routes: Iterable[Route] = (),
        caches: CacheService | None = None,
        engine: RenderEngine | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._pending_routes: list[Route] = list(routes)
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._template_globals: dict[str, Any] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._caches: CacheService = caches or CacheService.create(self.config.promise_cache_size)
        self._engine: RenderEngine | None = engine
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._router: Router | None = None
        self._orchestrator: RenderOrchestrator | None = None

    # -- Routes --

    def add_route(self, route: Route) -> None:
        """Add a route tree (a route and its children)."""
        self._check_not_frozen()
        self._pending_routes.append(route)

    def page(
        self,
        path: str,
        *,
        fetch: Fetcher | None = None,
        name: str | None = None,
        title: str | None = None,
        meta: Sequence[Mapping[str, str]] = (),
    ) -> Callable[[PageBuilder], PageBuilder]:
        """Register a page builder via decorator.

        ``fetch`` is the route-level data fetcher used by ``route_data()``
        boundaries on this page. ``meta`` lists static head tags.
        """

        def decorator(func: PageBuilder) -> PageBuilder:
            self.add_route(Route(path=path, page=func, fetch=fetch, name=name, title=title, meta=tuple(meta)))
            return func

        return decorator

    def error(self, code_or_exception: int | type) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler for a status code or exception type.

        Handlers run only for errors raised before the response starts.
        """

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    def template_global(self, name: str, value: Any) -> None:
        """Expose *value* to the document template."""
        self._check_not_frozen()
        self._template_globals[name] = value

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Runtime state --

    @property
    def caches(self) -> CacheService:
        return self._caches

    @property
    def router(self) -> Router:
        self._ensure_frozen()
        assert self._router is not None
        return self._router

    @property
    def orchestrator(self) -> RenderOrchestrator:
        self._ensure_frozen()
        assert self._orchestrator is not None
        return self._orchestrator

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Compile the app and serve it with uvicorn."""
        self._ensure_frozen()

        from wren.server.dev import run_server

        run_server(
            self,
            host or self.config.host,
            port or self.config.port,
            log_level=self.config.log_level,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()
        assert self._orchestrator is not None

        await handle_request(
            scope,
            receive,
            send,
            orchestrator=self._orchestrator,
            error_handlers=self._error_handlers,
            debug=self.config.debug,
        )

    async def _handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before the first HTTP request), then
        runs registered startup/shutdown hooks.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    await self._run_hooks(self._startup_hooks)
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return

            elif msg_type == "lifespan.shutdown":
                await self._run_hooks(self._shutdown_hooks)
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _run_hooks(self, hooks: list[Callable[..., Any]]) -> None:
        for hook in hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # -- Internal --

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = "Cannot modify the app after it has started serving."
            raise RuntimeError(msg)

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        # 1. Compile route table
        router = Router()
        for route in self._pending_routes:
            router.add(route)
        router.compile()

        # 2. Manifest (re-read per render in debug)
        loader = ManifestLoader(self.config.manifest_path, reload=self.config.debug)
        if self.config.manifest_path is not None:
            loader.load()

        # 3. Document template and engine
        engine = self._engine
        if engine is None:
            env = create_environment(self.config, globals_=self._template_globals)
            engine = HtmlEngine(
                Document(env, lang=self.config.lang),
                hydration_id=self.config.hydration_global,
            )

        self._router = router
        self._orchestrator = RenderOrchestrator(router, self._caches, loader, engine, self.config)
        self._frozen = True
