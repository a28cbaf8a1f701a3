"""Atrium application class.

Mutable during setup (providers, hooks, extra routes, middleware).
Frozen at runtime when ``app.run()`` or ``__call__()`` is first invoked.
The page and artifact route table is the exception: ``rebuild()``
recompiles it and swaps it in while the app keeps serving.
"""

import inspect
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kida.template import Markup

from atrium._internal.asgi import Receive, Scope, Send
from atrium.access import MANAGE_CAPABILITY
from atrium.cache import TransientCache, create_cache
from atrium.config import AtriumConfig
from atrium.content.source import ContentSource
from atrium.content.tree import PageTree
from atrium.diagnostics import Diagnostics
from atrium.dispatch import SiteRouter
from atrium.errors import Forbidden, NotFound, TemplateMissingError
from atrium.hooks import Hooks
from atrium.http.request import Request
from atrium.http.response import Response
from atrium.markdown import MarkdownRenderer
from atrium.middleware.auth import current_viewer
from atrium.middleware.protocol import Middleware
from atrium.navigation import MenuStore, Navigation
from atrium.providers import ContentProvider, ProviderRegistry
from atrium.rendering import Renderer, create_environment
from atrium.routing.route import Route, RouteMatch
from atrium.routing.router import Router
from atrium.server.handler import handle_request

logger = logging.getLogger("atrium.app")


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be compiled."""

    path: str
    handler: Callable[..., Any]
    methods: list[str] | None
    name: str | None


class Atrium:
    """The atrium site application.

    Collaborators are built from ``config`` unless passed in::

        registry = ProviderRegistry()
        registry.register(MemoryProvider("library", "Library", configs=[...]))
        app = Atrium(AtriumConfig(library_path="/srv/library"), registry=registry)

    Thread safety:
        The freeze transition uses a Lock + double-check so exactly one
        thread compiles the app. Tree, navigation, and route-table
        rebuilds publish with a single reference swap.
    """

    __slots__ = (
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_middleware_list",
        "_pending_routes",
        "_renderer",
        "_router",
        "_shutdown_hooks",
        "_site",
        "_startup_hooks",
        "_template_filters",
        "_template_globals",
        "cache",
        "config",
        "diagnostics",
        "hooks",
        "markdown",
        "navigation",
        "registry",
        "tree",
    )

    def __init__(
        self,
        config: AtriumConfig | None = None,
        *,
        registry: ProviderRegistry | None = None,
        hooks: Hooks | None = None,
        cache: TransientCache | None = None,
        menu_store: MenuStore | None = None,
    ) -> None:
        self.config: AtriumConfig = config or AtriumConfig()
        cfg = self.config
        self.registry = registry if registry is not None else ProviderRegistry()
        self.hooks = hooks if hooks is not None else Hooks()
        self.cache = cache if cache is not None else create_cache(cfg.cache_dir)
        self.markdown = MarkdownRenderer()

        self.tree = PageTree(
            ContentSource(cfg.content_root, cfg.conventions()),
            self.cache,
            ttl=cfg.cache_ttl,
            home_label=cfg.home_label,
        )
        self.navigation = Navigation(
            self.tree,
            self.cache,
            ttl=cfg.cache_ttl,
            menu_store=menu_store,
            menu_name=cfg.menu_name,
            menu_location=cfg.menu_location,
            url_for=cfg.url_for,
        )
        self.diagnostics = Diagnostics(cfg, self.tree, self.navigation, self.registry)

        self._pending_routes: list[_PendingRoute] = []
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type, Callable[..., Any]] = {404: self._not_found}
        self._template_filters: dict[str, Callable[..., Any]] = {
            "markdown": lambda source: Markup(self.markdown.render(source or "")),
        }
        self._template_globals: dict[str, Any] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen = False
        self._freeze_lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._router: Router | None = None
        self._middleware: tuple[Callable[..., Any], ...] = ()
        self._renderer: Renderer | None = None
        self._site: SiteRouter | None = None

        self._register_api()

    # -- Setup --

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a host route. Host routes are matched before pages."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._pending_routes.append(_PendingRoute(path, func, methods, name))
            return func

        return decorator

    def register_provider(self, provider: ContentProvider) -> None:
        """Register *provider*; its routes appear at the next route compile."""
        self.registry.register(provider)
        if self._site is not None:
            self._site.compile()

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register an error handler via decorator."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    def add_middleware(self, middleware: Middleware) -> None:
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    def template_filter(
        self,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a kida template filter."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._template_filters[name or func.__name__] = func
            return func

        return decorator

    def template_global(
        self,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a kida template global."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._template_globals[name or func.__name__] = func
            return func

        return decorator

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a startup hook; runs after the tree and routes are warm."""
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Runtime --

    @property
    def site(self) -> SiteRouter:
        self._ensure_frozen()
        assert self._site is not None
        return self._site

    @property
    def renderer(self) -> Renderer:
        self._ensure_frozen()
        assert self._renderer is not None
        return self._renderer

    def warm(self) -> bool:
        """Build (or load) the tree and navigation, then compile routes."""
        tree_ok = self.tree.build()
        nav_ok = self.navigation.build() if tree_ok else False
        self.site.compile()
        return tree_ok and nav_ok

    def rebuild(self) -> dict[str, Any]:
        """Clear caches, rebuild tree and navigation, recompile routes."""
        result = self.diagnostics.rebuild()
        self.site.compile()
        result["routes"] = len(self.site.router.routes)
        return result

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Serve with pounce. Reloads on change when ``config.debug`` is set."""
        from atrium.server.dev import run_dev_server

        self._ensure_frozen()
        content_root = self.config.content_root
        run_dev_server(
            self,
            host or self.config.host,
            port or self.config.port,
            reload=self.config.debug,
            reload_dirs=(str(content_root),) if content_root is not None else (),
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()
        await handle_request(
            scope,
            receive,
            send,
            match=self._match,
            middleware=self._middleware,
            error_handlers=self._error_handlers,
            renderer=self._renderer,
            debug=self.config.debug,
            api_prefix=self.config.api_prefix,
        )

    def _match(self, method: str, path: str) -> RouteMatch:
        """Host and API routes first, then the page and artifact table."""
        assert self._router is not None and self._site is not None
        try:
            return self._router.match(method, path)
        except NotFound:
            return self._site.router.match(method, path)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    if not self.warm():
                        logger.warning("Serving with status %s", self.diagnostics.status())
                    for hook in self._startup_hooks:
                        result = hook()
                        if inspect.isawaitable(result):
                            await result
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    result = hook()
                    if inspect.isawaitable(result):
                        await result
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Read API --

    def _register_api(self) -> None:
        prefix = self.config.api_prefix.rstrip("/")

        @self.route(f"{prefix}/status", name="api_status")
        def status() -> dict[str, Any]:
            return self.diagnostics.full_report()

        @self.route(f"{prefix}/page-tree", name="api_page_tree")
        def page_tree() -> dict[str, Any]:
            return {"built_at": self.tree.built_at, "pages": self.tree.to_list()}

        @self.route(f"{prefix}/navigation", name="api_navigation")
        def navigation() -> dict[str, Any]:
            return {"items": self.navigation.to_list(), "stats": self.navigation.stats()}

        @self.route(f"{prefix}/rebuild", methods=["POST"], name="api_rebuild")
        def rebuild() -> dict[str, Any]:
            viewer = current_viewer()
            if MANAGE_CAPABILITY not in viewer.capabilities:
                raise Forbidden(f"Rebuilding requires the {MANAGE_CAPABILITY!r} capability")
            logger.info("Rebuild requested by %s", viewer.id)
            return self.rebuild()

    def _not_found(self, request: Request, exc: NotFound) -> Response:
        try:
            return self.site.not_found(exc.detail)
        except TemplateMissingError:
            logger.warning("not_found.html is missing; sending a plain 404")
            return Response(body=exc.detail or "Not Found", status=404)

    # -- Internal --

    def _ensure_frozen(self) -> None:
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
        router = Router()
        for pending in self._pending_routes:
            methods = {m.upper() for m in (pending.methods or ["GET"])}
            if "GET" in methods:
                methods.add("HEAD")
            route = Route(pending.path, pending.handler, frozenset(methods), pending.name)
            if not router.add(route):
                logger.warning("Route %s is registered twice; keeping the first", pending.path)
        router.compile()
        self._router = router
        self._middleware = tuple(self._middleware_list)

        # Middleware may publish template globals (e.g. current_viewer).
        globals_: dict[str, Any] = {}
        for mw in self._middleware_list:
            globals_.update(getattr(mw, "template_globals", {}))
        globals_.update(self._template_globals)

        env = create_environment(self.config, filters=self._template_filters, globals_=globals_)
        self._renderer = Renderer(env)
        self._site = SiteRouter(
            config=self.config,
            tree=self.tree,
            navigation=self.navigation,
            registry=self.registry,
            hooks=self.hooks,
            renderer=self._renderer,
            markdown=self.markdown,
        )
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and filters before the first request."
            )
            raise RuntimeError(msg)
