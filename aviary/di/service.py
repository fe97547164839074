"""
Service plugins - named values produced once at boot.

A service plugin declares a name, the services it depends on, a ``produce``
function and a lifetime:

- singleton (default): produced once per boot graph, whoever declares it
- transient: produced once per encapsulation scope that declares it

Example:
    ```python
    config = service_plugin("config", lambda deps: {"dsn": "sqlite://"})

    db = service_plugin(
        "db",
        lambda deps: connect(deps.config["dsn"]),
        dependencies={"config": config},
        teardown=lambda conn: conn.close(),
    )
    ```
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Tuple, TypeVar
import logging

from ..faults import (
    DependencyCycleFault,
    DuplicateRegistrationFault,
    LifecycleMisuseFault,
    PhaseViolationFault,
    PluginDefinitionFault,
)
from .keys import PluginKey, PluginKind
from .utils import Resolved, ensure_registerable, maybe_await


logger = logging.getLogger("aviary.di.service")

T = TypeVar("T")


class Lifetime(str, Enum):
    """Service lifetimes."""

    SINGLETON = "singleton"  # One value per boot graph
    TRANSIENT = "transient"  # One value per declaring encapsulation scope


class ServiceState(str, Enum):
    """Registration state of one service plugin instance."""

    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    REGISTERED = "registered"
    TESTED = "tested"


class _ServiceBookkeeping:
    """Mutable state kept behind an otherwise frozen definition."""

    __slots__ = ("state", "context", "value", "has_value")

    def __init__(self):
        self.state = ServiceState.UNREGISTERED
        self.context: Optional[Any] = None
        self.value: Any = None
        self.has_value = False


def check_cycle(key: PluginKey, path: Tuple[PluginKey, ...]) -> None:
    """
    Raise if ``key`` is already being resolved further up ``path``.

    Keys carry their kind, so a scoped plugin and a service sharing a name
    never close a cycle. The reported cycle starts at the first occurrence
    of ``key`` and names every plugin in traversal order, e.g.
    ``a -> b -> c -> a``.
    """
    if key in path:
        cycle = path[path.index(key):] + (key,)
        raise DependencyCycleFault([k.name for k in cycle])


async def load_dependencies(
    dependencies: Mapping[str, "ServicePlugin"],
    handle: Any,
    locator: Any,
    path: Tuple[PluginKey, ...] = (),
) -> Resolved:
    """Register every dependency depth-first, in declaration order."""
    resolved: Dict[str, Any] = {}
    for key, dependency in dependencies.items():
        resolved[key] = await dependency._register(handle, locator, path)
    return Resolved(resolved)


async def load_dependencies_for_testing(
    dependencies: Mapping[str, "ServicePlugin"],
    path: Tuple[PluginKey, ...] = (),
) -> Resolved:
    """Resolve every dependency in isolation, without a runtime."""
    resolved: Dict[str, Any] = {}
    for key, dependency in dependencies.items():
        resolved[key] = await dependency._resolve_for_testing(path)
    return Resolved(resolved)


def validate_dependencies(name: Any, dependencies: Optional[Mapping[str, Any]]) -> Mapping[str, "ServicePlugin"]:
    """Freeze a dependency map, rejecting anything that is not a service plugin."""
    if dependencies is None:
        return MappingProxyType({})
    if not isinstance(dependencies, Mapping):
        raise PluginDefinitionFault(name, "dependencies must be a mapping of name to service plugin")
    for key, dependency in dependencies.items():
        if not isinstance(key, str):
            raise PluginDefinitionFault(name, f"dependency key {key!r} must be a string")
        if not isinstance(dependency, ServicePlugin):
            raise PluginDefinitionFault(
                name,
                f"dependency '{key}' must be a service plugin, got {type(dependency).__name__}",
            )
    return MappingProxyType(dict(dependencies))


@dataclass(frozen=True, eq=False)
class ServicePlugin(Generic[T]):
    """
    Service plugin definition.

    Immutable after construction: assigning any attribute raises
    ``dataclasses.FrozenInstanceError``. The name is the plugin's sole
    identity in the registry and in duplicate detection.

    Attributes:
        name: Unique plugin name within a boot graph
        produce: ``produce(deps) -> value``, sync or async
        dependencies: Service plugins keyed by the name ``produce`` sees them under
        lifecycle: ``singleton`` or ``transient``
        teardown: ``teardown(value)``, sync or async, run once at shutdown
    """

    name: str
    produce: Callable[[Resolved], Any]
    dependencies: Mapping[str, "ServicePlugin"] = field(default_factory=dict)
    lifecycle: Lifetime = Lifetime.SINGLETON
    teardown: Optional[Callable[[Any], Any]] = None
    _book: _ServiceBookkeeping = field(
        default_factory=_ServiceBookkeeping, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise PluginDefinitionFault(self.name, "name must be a non-empty string")
        if not callable(self.produce):
            raise PluginDefinitionFault(self.name, "produce must be callable")
        if self.teardown is not None and not callable(self.teardown):
            raise PluginDefinitionFault(self.name, "teardown must be callable")
        try:
            lifecycle = Lifetime(self.lifecycle)
        except ValueError:
            raise PluginDefinitionFault(
                self.name, f"unknown lifecycle {self.lifecycle!r} (expected 'singleton' or 'transient')"
            ) from None

        object.__setattr__(self, "lifecycle", lifecycle)
        object.__setattr__(self, "dependencies", validate_dependencies(self.name, self.dependencies))

    @property
    def key(self) -> PluginKey[T]:
        return PluginKey(PluginKind.SERVICE, self.name)

    @property
    def state(self) -> ServiceState:
        return self._book.state

    @property
    def props(self) -> T:
        """
        The value produced for this service.

        Available after ``for_testing()``, or while the boot pass that
        registered it is still booting.
        """
        book = self._book
        if book.state is ServiceState.TESTED and book.has_value:
            return book.value

        if book.context is None or not book.has_value:
            raise PhaseViolationFault(
                f'Cannot access props for service "{self.name}" as it has not been registered yet.',
                plugin=self.name,
            )

        if not book.context.booting:
            raise PhaseViolationFault(
                f'Cannot access props for service "{self.name}" outside of the boot phase.',
                plugin=self.name,
                phase=book.context.phase.value,
            )

        return book.value

    # ------------------------------------------------------------------
    # Boot registration
    # ------------------------------------------------------------------

    async def register(self, runtime: Any, locator: Optional[Any] = None) -> T:
        """
        Resolve this service (and, first, its dependencies) into ``runtime``.

        Args:
            runtime: Runtime, ScopeHandle, or the runtime's Starlette app
            locator: Registry to publish into (defaults to the runtime's)

        Returns:
            The produced value

        Raises:
            PhaseViolationFault: Outside booting, or from a configure callback
            LifecycleMisuseFault: After ``for_testing()`` was used
            DuplicateRegistrationFault: On a name clash in the same scope
        """
        handle = ensure_registerable(runtime, PluginKind.SERVICE, self.name)
        return await self._register(handle, locator if locator is not None else handle.context.locator, ())

    async def _register(self, handle: Any, locator: Any, path: Tuple[PluginKey, ...]) -> T:
        book = self._book
        if book.state is ServiceState.TESTED:
            raise LifecycleMisuseFault(
                f"Impossible to register service plugin '{self.name}' because 'for_testing' has been called.",
                plugin=self.name,
            )
        check_cycle(self.key, path)

        key = self.key
        scope = handle.scope

        if self.lifecycle is Lifetime.SINGLETON:
            if locator.has(key):
                self._ensure_owner(locator, scope)
                return locator.get(key)

            pending = locator.pending(key)
            if pending is not None:
                value = await pending
                self._ensure_owner(locator, scope)
                return value

        if scope.has_registered(PluginKind.SERVICE, self.name):
            raise DuplicateRegistrationFault(PluginKind.SERVICE.label, self.name, scope=scope.path)
        scope.mark_registered(PluginKind.SERVICE, self.name, self)

        if self.lifecycle is Lifetime.SINGLETON:
            locator.begin(key)

        previous = book.state
        book.state = ServiceState.REGISTERING
        logger.debug(f"Registering {self.lifecycle.value} service '{self.name}' in {scope.path}")

        try:
            deps = await load_dependencies(self.dependencies, handle, locator, path + (self.key,))
            value = await maybe_await(self.produce(deps))
        except BaseException as e:
            if self.lifecycle is Lifetime.SINGLETON:
                locator.fail(key, e)
            book.state = previous
            raise

        if self.lifecycle is Lifetime.SINGLETON:
            locator.complete(key, value, owner=self)
        else:
            scope.set_transient(key, value)

        book.state = ServiceState.REGISTERED
        book.context = handle.context
        book.value = value
        book.has_value = True

        if self.teardown is not None:
            handle.context.lifecycle.on_close(
                partial(self.teardown, value),
                name=f"{self.name}.teardown",
            )

        return value

    def _ensure_owner(self, locator: Any, scope: Any) -> None:
        if locator.owner(self.key) is not self:
            raise DuplicateRegistrationFault(PluginKind.SERVICE.label, self.name, scope=scope.path)

    # ------------------------------------------------------------------
    # Test mode
    # ------------------------------------------------------------------

    async def for_testing(self) -> T:
        """
        Resolve this service in isolation, without booting a runtime.

        Dependencies are resolved recursively; a dependency cycle fails with
        the full cycle path. Once used, the plugin can no longer be
        registered against a real runtime.

        Raises:
            DependencyCycleFault: If the dependency graph has a cycle
            LifecycleMisuseFault: If the plugin was already registered
        """
        return await self._resolve_for_testing(())

    async def _resolve_for_testing(self, path: Tuple[PluginKey, ...]) -> T:
        check_cycle(self.key, path)

        book = self._book
        if book.state in (ServiceState.REGISTERING, ServiceState.REGISTERED):
            raise LifecycleMisuseFault(
                "for_testing() can only be used before booting the application.",
                plugin=self.name,
            )

        if book.state is ServiceState.TESTED and book.has_value and self.lifecycle is Lifetime.SINGLETON:
            return book.value

        deps = await load_dependencies_for_testing(self.dependencies, path + (self.key,))
        value = await maybe_await(self.produce(deps))

        book.state = ServiceState.TESTED
        book.value = value
        book.has_value = True
        return value

    def __repr__(self) -> str:
        return f"<ServicePlugin {self.name!r} {self.lifecycle.value} state={self._book.state.value}>"


def service_plugin(
    name: str,
    produce: Callable[[Resolved], Any],
    *,
    dependencies: Optional[Mapping[str, ServicePlugin]] = None,
    lifecycle: str = "singleton",
    teardown: Optional[Callable[[Any], Any]] = None,
) -> ServicePlugin:
    """Declare a service plugin."""
    return ServicePlugin(
        name=name,
        produce=produce,
        dependencies=dependencies if dependencies is not None else {},
        lifecycle=lifecycle,
        teardown=teardown,
    )
