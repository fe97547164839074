"""
Per-request context.

One ``RequestContext`` is created for every HTTP request entering a booted
runtime and stored in the request's ASGI state. It holds the memoized values
of scoped plugins for that request only, keyed by plugin identity, and is
dropped together with the request.
"""

from typing import Any, Callable, Dict, Optional
import asyncio

from .utils import maybe_await


STATE_KEY = "aviary.request_context"


class RequestContext:
    """Explicit per-request memoization slot."""

    __slots__ = ("boot", "values", "_pending")

    def __init__(self, boot: Any):
        self.boot = boot
        self.values: Dict[Any, Any] = {}
        self._pending: Dict[Any, asyncio.Future] = {}

    @classmethod
    def of(cls, request: Any) -> Optional["RequestContext"]:
        """
        Find the context of ``request``.

        Accepts a Starlette request/connection, a raw ASGI scope dict, or a
        RequestContext. Returns None for anything not served by a runtime.
        """
        if isinstance(request, RequestContext):
            return request
        scope = request if isinstance(request, dict) else getattr(request, "scope", None)
        if not isinstance(scope, dict):
            return None
        state = scope.get("state")
        if not isinstance(state, dict):
            return None
        return state.get(STATE_KEY)

    def attach(self, scope: dict) -> None:
        """Store this context in a fresh copy of the ASGI scope's state."""
        state = dict(scope.get("state") or {})
        state[STATE_KEY] = self
        scope["state"] = state

    def has(self, owner: Any) -> bool:
        return owner in self.values

    async def memoize(self, owner: Any, factory: Callable[[], Any]) -> Any:
        """
        Return the value memoized for ``owner``, producing it on first use.

        Concurrent callers within the same request share one in-flight
        production; a failed production is not memoized.
        """
        if owner in self.values:
            return self.values[owner]

        pending = self._pending.get(owner)
        if pending is not None:
            return await pending

        future = asyncio.get_running_loop().create_future()
        self._pending[owner] = future
        try:
            value = await maybe_await(factory())
        except BaseException as e:
            del self._pending[owner]
            future.set_exception(e)
            future.exception()
            raise

        self.values[owner] = value
        del self._pending[owner]
        future.set_result(value)
        return value

    def __repr__(self) -> str:
        return f"<RequestContext {len(self.values)} memoized>"
