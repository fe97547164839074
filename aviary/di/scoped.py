"""
Scoped plugins - values produced lazily, once per request.

A scoped plugin depends on service plugins only. Its dependencies are
resolved once at boot; its own ``produce(request, deps)`` runs on first
``get(request)`` within a request and is memoized for the rest of it.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar
import logging

from ..faults import DuplicateRegistrationFault, PhaseViolationFault, PluginDefinitionFault
from .keys import PluginKey, PluginKind
from .request import RequestContext
from .service import load_dependencies, load_dependencies_for_testing, validate_dependencies
from .utils import Resolved, ensure_registerable, maybe_await


logger = logging.getLogger("aviary.di.scoped")

T = TypeVar("T")


def _not_ready(name: str) -> PhaseViolationFault:
    return PhaseViolationFault(
        f'Cannot call .get() for "{name}" before the application is ready',
        plugin=name,
    )


class ScopedGetter(Generic[T]):
    """
    Per-request accessor published by a registered scoped plugin.

    Handed to application plugins as ``deps.scoped_services.<name>``.
    """

    __slots__ = ("plugin", "boot", "deps")

    def __init__(self, plugin: "ScopedPlugin[T]", boot: Any, deps: Resolved):
        self.plugin = plugin
        self.boot = boot
        self.deps = deps

    async def get(self, request: Any) -> T:
        """Value of the plugin for ``request``, produced at most once per request."""
        if not self.boot.booted:
            raise _not_ready(self.plugin.name)

        ctx = RequestContext.of(request)
        if ctx is None:
            raise PhaseViolationFault(
                f'Cannot call .get() for "{self.plugin.name}" outside of a request served by the application',
                plugin=self.plugin.name,
            )

        return await ctx.memoize(self.plugin, lambda: self.plugin.produce(request, self.deps))

    __call__ = get

    def __repr__(self) -> str:
        return f"<ScopedGetter {self.plugin.name!r}>"


@dataclass(frozen=True, eq=False)
class ScopedPlugin(Generic[T]):
    """
    Scoped plugin definition.

    Attributes:
        name: Plugin name, unique within a boot graph
        produce: ``produce(request, deps) -> value``, sync or async
        dependencies: Service plugins keyed by the name ``produce`` sees them under
    """

    name: str
    produce: Callable[[Any, Resolved], Any]
    dependencies: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise PluginDefinitionFault(self.name, "name must be a non-empty string")
        if not callable(self.produce):
            raise PluginDefinitionFault(self.name, "produce must be callable")
        for key, dependency in dict(self.dependencies if isinstance(self.dependencies, Mapping) else {}).items():
            if isinstance(dependency, ScopedPlugin):
                raise PluginDefinitionFault(
                    self.name,
                    f"dependency '{key}' is a scoped plugin; scoped plugins may only depend on service plugins",
                )
        object.__setattr__(self, "dependencies", validate_dependencies(self.name, self.dependencies))

    @property
    def key(self) -> PluginKey[ScopedGetter[T]]:
        return PluginKey(PluginKind.SCOPED, self.name)

    async def register(self, runtime: Any, locator: Optional[Any] = None) -> ScopedGetter[T]:
        """
        Resolve this plugin's service dependencies and publish its getter.

        The same plugin reached again anywhere in the boot graph reuses the
        published getter.

        Raises:
            PhaseViolationFault: Outside booting, or from a configure callback
            DuplicateRegistrationFault: If a different plugin already uses the name
        """
        handle = ensure_registerable(runtime, PluginKind.SCOPED, self.name)
        return await self._register(handle, locator if locator is not None else handle.context.locator)

    async def _register(self, handle: Any, locator: Any) -> ScopedGetter[T]:
        key = self.key
        scope = handle.scope

        pending = locator.pending(key)
        if pending is not None:
            await pending

        if locator.has(key):
            if locator.owner(key) is not self:
                raise DuplicateRegistrationFault(PluginKind.SCOPED.label, self.name, scope=scope.path)
            return locator.get(key)

        scope.mark_registered(PluginKind.SCOPED, self.name, self)
        locator.begin(key)
        logger.debug(f"Registering scoped service '{self.name}' in {scope.path}")

        try:
            deps = await load_dependencies(self.dependencies, handle, locator, (self.key,))
        except BaseException as e:
            locator.fail(key, e)
            raise

        getter = ScopedGetter(self, handle.context, deps)
        locator.complete(key, getter, owner=self)
        return getter

    async def get(self, request: Any) -> T:
        """
        Value of this plugin for ``request``.

        Works from any route of the runtime that registered the plugin.

        Raises:
            PhaseViolationFault: Before the owning runtime is ready
        """
        ctx = RequestContext.of(request)
        if ctx is None or not ctx.boot.booted:
            raise _not_ready(self.name)

        getter = ctx.boot.locator.get(self.key, None)
        if getter is None or getter.plugin is not self:
            raise PhaseViolationFault(
                f'Scoped plugin "{self.name}" is not registered in this application',
                plugin=self.name,
            )
        return await getter.get(request)

    async def for_testing(self, request: Any) -> T:
        """Produce a value for ``request`` with dependencies resolved in test mode."""
        deps = await load_dependencies_for_testing(self.dependencies, (self.key,))
        return await maybe_await(self.produce(request, deps))

    def __repr__(self) -> str:
        return f"<ScopedPlugin {self.name!r}>"


def scoped_plugin(
    name: str,
    produce: Callable[[Any, Resolved], Any],
    *,
    dependencies: Optional[Mapping[str, Any]] = None,
) -> ScopedPlugin:
    """Declare a scoped plugin."""
    return ScopedPlugin(
        name=name,
        produce=produce,
        dependencies=dependencies if dependencies is not None else {},
    )
