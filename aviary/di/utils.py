"""
Shared helpers for plugin registration.
"""

from collections.abc import Mapping
from typing import Any, Iterator, Optional
import inspect

from ..faults import PhaseViolationFault
from .keys import PluginKind


class Resolved(Mapping):
    """
    Read-only view of resolved dependencies.

    Keys are the names a plugin declared its dependencies under; each is
    reachable both as ``deps["repo"]`` and as ``deps.repo``.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        object.__setattr__(self, "_values", dict(values or {}))

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"No dependency named '{name}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Resolved dependencies are read-only")

    def __repr__(self) -> str:
        return f"Resolved({self._values!r})"


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


def normalize_prefix(prefix: Optional[str]) -> str:
    """'/foo/' -> '/foo', 'foo' -> '/foo', '' / '/' / None -> ''."""
    if not prefix:
        return ""
    prefix = "/" + prefix.strip("/")
    return "" if prefix == "/" else prefix


def join_path(prefix: str, path: str) -> str:
    """
    Compose a scope prefix with a path.

    A bare '/' under a prefix maps to the prefix itself, so a route declared
    as '/' in a unit mounted at '/foo/bar' answers '/foo/bar'.
    """
    prefix = normalize_prefix(prefix)
    if not path or path == "/":
        return prefix or "/"
    if not path.startswith("/"):
        path = "/" + path
    return prefix + path


def as_handle(runtime: Any):
    """
    Coerce a runtime reference into a ``ScopeHandle``.

    Accepts a ``ScopeHandle``, a ``Runtime`` or the Starlette application
    owned by a runtime. Anything else (e.g. a bare Starlette app) has no boot
    context and yields None.
    """
    from ..runtime import Runtime, ScopeHandle

    if isinstance(runtime, ScopeHandle):
        return runtime
    if isinstance(runtime, Runtime):
        return runtime.root
    state = getattr(runtime, "state", None)
    owner = getattr(state, "aviary_runtime", None) if state is not None else None
    if isinstance(owner, Runtime):
        return owner.root
    return None


def ensure_registerable(runtime: Any, kind: PluginKind, name: str):
    """
    Check that a plugin may be registered through ``runtime`` right now.

    Returns:
        The ScopeHandle to register against

    Raises:
        PhaseViolationFault: Outside the booting phase, or when called from
            inside an application plugin's ``configure`` callback
    """
    handle = as_handle(runtime)
    noun = "an application" if kind is PluginKind.APPLICATION else f"a {kind.value}"

    if handle is None or not handle.context.booting:
        phase = handle.context.phase.value if handle is not None else None
        raise PhaseViolationFault(
            f"You can only register {noun} plugin during booting.",
            plugin=name,
            phase=phase,
        )

    if handle.in_configure:
        if kind is PluginKind.APPLICATION:
            message = "You can only inject an application plugin as a child, not register it manually."
        else:
            message = f"You can only inject {noun} plugin as a dependency, not register it manually."
        raise PhaseViolationFault(message, plugin=name, phase=handle.context.phase.value)

    return handle
