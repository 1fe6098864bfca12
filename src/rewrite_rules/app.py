"""Application class.

Mutable during setup (rewrite rules, query variables, routes, middleware,
filters). Frozen at runtime when ``__call__()`` is first invoked.
"""

import inspect
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from kida import Environment

from rewrite_rules._internal.asgi import Receive, Scope, Send
from rewrite_rules.config import AppConfig
from rewrite_rules.middleware.protocol import Middleware
from rewrite_rules.routing import Route
from rewrite_rules.rules.dispatcher import Dispatcher
from rewrite_rules.rules.matcher import RewriteTable
from rewrite_rules.rules.registry import RuleRegistry
from rewrite_rules.rules.rule import Position
from rewrite_rules.server.handler import handle_request
from rewrite_rules.templating.integration import create_environment

logger = logging.getLogger("rewrite_rules.app")

type ErrorHandler = Callable[..., Any]


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be compiled."""

    pattern: str
    handler: Callable[..., Any]
    methods: list[str] | None
    name: str | None


class App:
    """The rewrite-rules application.

    Rewrite rules decide which requests this app answers and how; the
    app's own routes sit between the top and bottom rules in the rewrite
    table::

        app = App(AppConfig(template_dir="templates"))
        app.add_query_vars(["product"])
        app.add_rule(
            r"^shop/([^/]+)/?$",
            query="index.php?product=$matches[1]",
            controller=load_product,
            template="product.html",
        )

    Thread safety:
        Setup is single-threaded (module import time). The freeze
        transition uses a Lock + double-check so exactly one thread
        compiles the rewrite table, even when several ASGI workers call
        ``__call__()`` concurrently on the first request.
    """

    __slots__ = (
        "_dispatcher",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_kida_env",
        "_middleware",
        "_middleware_list",
        "_pending_routes",
        "_shutdown_hooks",
        "_startup_hooks",
        "_table",
        "_template_filters",
        "_template_globals",
        "config",
        "rules",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self.rules: RuleRegistry = RuleRegistry(strict=self.config.strict_rules)
        self._pending_routes: list[_PendingRoute] = []
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._template_filters: dict[str, Callable[..., Any]] = {}
        self._template_globals: dict[str, Any] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set by _freeze()
        self._table: RewriteTable | None = None
        self._dispatcher: Dispatcher | None = None
        self._middleware: tuple[Callable[..., Any], ...] = ()
        self._kida_env: Environment | None = None

    # -- Rewrite rules --

    def add_rule(
        self,
        pattern: str,
        *,
        query: str | None = None,
        controller: Any = None,
        template: str | None = None,
        redirect: Callable[..., Any] | None = None,
        access: Callable[[], Any] | None = None,
        position: Position | str = Position.TOP,
    ) -> None:
        """Register a rewrite rule. See ``RuleRegistry.add_rule``."""
        self._check_not_frozen()
        self.rules.add_rule(
            pattern,
            query=query,
            controller=controller,
            template=template,
            redirect=redirect,
            access=access,
            position=position,
        )

    def add_rules(self, entries: Iterable[Mapping[str, Any]]) -> None:
        self._check_not_frozen()
        self.rules.add_rules(entries)

    def add_query_vars(self, names: str | Iterable[str]) -> None:
        self._check_not_frozen()
        self.rules.add_query_vars(names)

    def rule(
        self,
        pattern: str,
        *,
        query: str | None = None,
        template: str | None = None,
        redirect: Callable[..., Any] | None = None,
        access: Callable[[], Any] | None = None,
        position: Position | str = Position.TOP,
    ) -> Callable[[Any], Any]:
        """Register the decorated function or class as a rule's controller.

        Usage::

            @app.rule(r"^shop/([^/]+)/?$", query="index.php?product=$matches[1]")
            def product():
                g.product = catalog.find(get_query_var("product"))
        """

        def decorator(controller: Any) -> Any:
            self.add_rule(
                pattern,
                query=query,
                controller=controller,
                template=template,
                redirect=redirect,
                access=access,
                position=position,
            )
            return controller

        return decorator

    # -- Routes --

    def route(
        self,
        pattern: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a route handler via decorator.

        Args:
            pattern: Regex matched against the path without its surrounding
                slashes. Named groups become handler keyword arguments.
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Optional route name.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._pending_routes.append(_PendingRoute(pattern, func, methods, name))
            return func

        return decorator

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator."""

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    # -- Template integration --

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

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        Registering rules from a startup hook is too late: the rewrite
        table is compiled before the hooks run.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Compiled state --

    @property
    def table(self) -> RewriteTable:
        """The compiled rewrite table (freezes the app)."""
        self._ensure_frozen()
        assert self._table is not None
        return self._table

    @property
    def dispatcher(self) -> Dispatcher:
        self._ensure_frozen()
        assert self._dispatcher is not None
        return self._dispatcher

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()
        assert self._table is not None
        assert self._dispatcher is not None
        await handle_request(
            scope,
            receive,
            send,
            table=self._table,
            dispatcher=self._dispatcher,
            middleware=self._middleware,
            error_handlers=self._error_handlers,
            kida_env=self._kida_env,
            config=self.config,
        )

    async def _handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before the first HTTP request), so an
        invalid rewrite pattern fails startup instead of the first request.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
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

    # -- Internal --

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
        # 1. Compile the rewrite table: top rules, routes, bottom rules
        routes = [
            Route(
                pattern=pending.pattern,
                handler=pending.handler,
                methods=frozenset(m.upper() for m in (pending.methods or ["GET"])),
                name=pending.name,
            )
            for pending in self._pending_routes
        ]
        self._table = RewriteTable.compile(self.rules, routes)
        self._dispatcher = Dispatcher.from_config(self.rules, self.config)

        # 2. Capture middleware as immutable tuple
        self._middleware = tuple(self._middleware_list)

        # 2b. Middleware can define a `template_globals` dict attribute to
        # auto-register template globals (e.g. AuthMiddleware → current_user).
        for mw in self._middleware:
            mw_globals = getattr(mw, "template_globals", None)
            if mw_globals and isinstance(mw_globals, dict):
                for name, func in mw_globals.items():
                    self._template_globals.setdefault(name, func)

        # 3. Initialize kida environment
        self._kida_env = create_environment(
            self.config,
            self._template_filters,
            self._template_globals,
        )

        self._frozen = True
        logger.info(
            "Compiled rewrite table: %d rules, %d routes, %d query vars",
            len(self.rules),
            len(routes),
            len(self.rules.query_vars),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register rules, routes and middleware before calling app()."
            )
            raise RuntimeError(msg)
