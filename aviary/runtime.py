"""
Runtime - the host request-handling runtime the plugin engine drives.

Wraps a Starlette application. Starlette owns routing, request parsing,
responses and middleware; the runtime adds what the engine needs on top:

- the BootContext of the boot pass (phase, locator, ready/close hooks)
- prefix-scoped handles for registering routes from application plugins
- one RequestContext per request for scoped plugin memoization
- ASGI lifespan wiring, so ``ready``/``close`` follow the server
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union
import logging

import httpx
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from .di.locator import Locator
from .di.request import RequestContext
from .di.scopes import EncapsulationScope
from .di.utils import join_path, maybe_await
from .lifecycle import BootContext, Lifecycle


logger = logging.getLogger("aviary.runtime")


class RequestContextMiddleware:
    """
    Pure ASGI middleware creating one RequestContext per request.

    The context lives in ``scope["state"]`` and is dropped with the request.
    """

    __slots__ = ("app", "boot")

    def __init__(self, app: Callable, boot: BootContext):
        self.app = app
        self.boot = boot

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] in ("http", "websocket"):
            RequestContext(self.boot).attach(scope)
        await self.app(scope, receive, send)


def _as_endpoint(endpoint: Callable) -> Callable:
    """Adapt a route handler so plain return values become responses."""

    @wraps(endpoint)
    async def handler(request):
        result = await maybe_await(endpoint(request))
        if isinstance(result, Response):
            return result
        if result is None:
            return Response(status_code=204)
        if isinstance(result, str):
            return PlainTextResponse(result)
        return JSONResponse(result)

    return handler


class ScopeHandle:
    """
    Prefix-scoped view of a runtime.

    Handed to ``register`` and ``configure``. Every route registered through
    a handle is mounted under the handle's composed prefix.
    """

    __slots__ = ("runtime", "scope", "in_configure")

    def __init__(self, runtime: "Runtime", scope: EncapsulationScope, *, in_configure: bool = False):
        self.runtime = runtime
        self.scope = scope
        self.in_configure = in_configure

    @property
    def context(self) -> BootContext:
        return self.runtime.context

    @property
    def locator(self) -> Locator:
        return self.runtime.context.locator

    @property
    def prefix(self) -> str:
        return self.scope.prefix

    @property
    def app(self) -> Starlette:
        return self.runtime.app

    @property
    def state(self):
        return self.runtime.state

    def child(self, scope: EncapsulationScope) -> "ScopeHandle":
        """Handle for a nested scope."""
        return ScopeHandle(self.runtime, scope)

    def configuring(self) -> "ScopeHandle":
        """Same scope, flagged as inside a configure callback."""
        return ScopeHandle(self.runtime, self.scope, in_configure=True)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def route(
        self,
        path: str,
        endpoint: Optional[Callable] = None,
        *,
        methods: Optional[Sequence[str]] = None,
        name: Optional[str] = None,
    ):
        """
        Register ``endpoint`` at ``prefix + path``.

        Usable directly or as a decorator. Handlers may return a Starlette
        response, a JSON-serializable value, a string, or None (204).
        """
        if endpoint is None:
            def decorator(func: Callable) -> Callable:
                self.route(path, func, methods=methods, name=name)
                return func
            return decorator

        full_path = join_path(self.prefix, path)
        self.app.router.routes.append(
            Route(full_path, _as_endpoint(endpoint), methods=list(methods or ["GET"]), name=name)
        )
        logger.debug(f"Route {','.join(methods or ['GET'])} {full_path} -> {getattr(endpoint, '__name__', endpoint)}")
        return endpoint

    def get(self, path: str, endpoint: Optional[Callable] = None, **kwargs):
        return self.route(path, endpoint, methods=["GET"], **kwargs)

    def post(self, path: str, endpoint: Optional[Callable] = None, **kwargs):
        return self.route(path, endpoint, methods=["POST"], **kwargs)

    def put(self, path: str, endpoint: Optional[Callable] = None, **kwargs):
        return self.route(path, endpoint, methods=["PUT"], **kwargs)

    def patch(self, path: str, endpoint: Optional[Callable] = None, **kwargs):
        return self.route(path, endpoint, methods=["PATCH"], **kwargs)

    def delete(self, path: str, endpoint: Optional[Callable] = None, **kwargs):
        return self.route(path, endpoint, methods=["DELETE"], **kwargs)

    # ------------------------------------------------------------------
    # Host behavior
    # ------------------------------------------------------------------

    def add_middleware(self, middleware_class: type, **options: Any) -> None:
        """Add a Starlette/ASGI middleware around the whole application."""
        self.app.add_middleware(middleware_class, **options)

    def add_exception_handler(self, exc_class_or_status: Union[int, type], handler: Callable) -> None:
        self.app.add_exception_handler(exc_class_or_status, handler)

    def on_ready(self, callback: Callable[[], Any], *, name: str = "ready_hook") -> None:
        self.context.lifecycle.on_ready(callback, name=name)

    def on_close(self, callback: Callable[[], Any], *, name: str = "close_hook") -> None:
        self.context.lifecycle.on_close(callback, name=name)

    def __repr__(self) -> str:
        flag = " configuring" if self.in_configure else ""
        return f"<ScopeHandle {self.scope.path} prefix={self.prefix or '/'}{flag}>"


class Runtime:
    """
    Host runtime of one boot pass.

    ASGI-callable, so it can be served directly by uvicorn. Starlette's
    lifespan startup makes it ready and lifespan shutdown closes it.

    Attributes:
        app: The wrapped Starlette application
        context: BootContext (phase, locator, lifecycle hooks)
        root_scope: Root encapsulation scope
        root: Handle on the root scope
    """

    def __init__(
        self,
        *,
        name: str = "app",
        debug: bool = False,
        middleware: Optional[Iterable[Middleware]] = None,
        exception_handlers: Optional[Dict[Any, Callable]] = None,
        locator: Optional[Locator] = None,
    ):
        self.name = name
        self.context = BootContext(locator if locator is not None else Locator(), Lifecycle(), name=name)
        self.root_scope = EncapsulationScope(name)
        self.app = Starlette(
            debug=debug,
            middleware=[Middleware(RequestContextMiddleware, boot=self.context), *(middleware or [])],
            exception_handlers=exception_handlers,
            lifespan=self._lifespan,
        )
        self.app.state.aviary_runtime = self
        self.root = ScopeHandle(self, self.root_scope)

    @property
    def state(self):
        """Per-process flag store of the host application."""
        return self.app.state

    @property
    def locator(self) -> Locator:
        return self.context.locator

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        await self.app(scope, receive, send)

    @asynccontextmanager
    async def _lifespan(self, app: Starlette):
        await self.ready()
        try:
            yield
        finally:
            await self.close()

    async def ready(self) -> None:
        """Leave the booting phase and run ready hooks."""
        await self.context.mark_ready()

    async def close(self) -> None:
        """
        Run close hooks (service teardowns first). Idempotent.

        Raises:
            Exception: The error of the only close hook that raised
            TeardownFault: If several close hooks raised
        """
        await self.context.shutdown()

    async def inject(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one in-process request to the application."""
        transport = httpx.ASGITransport(app=self.app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            return await client.request(method, url, **kwargs)

    @property
    def routes(self) -> List[str]:
        """Registered route paths, in registration order."""
        return [route.path for route in self.app.router.routes if isinstance(route, Route)]

    def print_plugins(self) -> str:
        """Render the plugin tree of this runtime."""
        return self.root_scope.render()

    def __repr__(self) -> str:
        return f"<Runtime {self.name!r} phase={self.context.phase.value}>"
