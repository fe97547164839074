"""
Application plugins - composition nodes of the boot graph.

An application plugin declares the services and scoped services it needs,
its child application plugins and its routing options, and wires routes in
``configure`` once all of those are resolved. Each registration opens its
own encapsulation scope; route prefixes compose from the parent scope.

Example:
    ```python
    async def configure(app, deps, options):
        @app.get("/")
        async def index(request):
            user = await deps.scoped_services.current_user.get(request)
            return {"posts": deps.services.posts.list(user)}

    posts_app = app_plugin(
        "posts",
        services={"posts": posts_repo},
        scoped_services={"current_user": current_user},
        options={"prefix": "/posts"},
        configure=configure,
    )
    ```
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, NamedTuple, Optional, Sequence, Tuple, Union
import logging

from ..faults import DuplicateRegistrationFault, PluginDefinitionFault
from .keys import PluginKind
from .scoped import ScopedPlugin
from .service import ServicePlugin, load_dependencies, validate_dependencies
from .utils import Resolved, ensure_registerable, maybe_await


logger = logging.getLogger("aviary.di.application")


class Dependencies(NamedTuple):
    """Resolved dependencies handed to ``configure``."""

    services: Resolved
    scoped_services: Resolved


ConfigureFn = Callable[[Any, Dependencies, Mapping[str, Any]], Union[None, Awaitable[None]]]


def _validate_scoped(name: str, scoped: Optional[Mapping[str, Any]]) -> Mapping[str, ScopedPlugin]:
    if scoped is None:
        return MappingProxyType({})
    if not isinstance(scoped, Mapping):
        raise PluginDefinitionFault(name, "scoped_services must be a mapping of name to scoped plugin")
    for key, dependency in scoped.items():
        if not isinstance(dependency, ScopedPlugin):
            raise PluginDefinitionFault(
                name,
                f"scoped service '{key}' must be a scoped plugin, got {type(dependency).__name__}",
            )
    return MappingProxyType(dict(scoped))


@dataclass(frozen=True, eq=False)
class AppPlugin:
    """
    Application plugin definition.

    Attributes:
        name: Plugin name, unique within its parent scope
        services: Service plugins keyed by the name ``configure`` sees them under
        scoped_services: Scoped plugins keyed the same way
        children: Child application plugins, registered in order before ``configure``
        options: Routing options; ``prefix`` applies to this plugin only,
            every other option is inherited by the children
        configure: ``configure(handle, deps, options)``, sync or async
        encapsulate: When False, no scope of its own is opened: routes,
            services and children land in the parent scope under the
            parent's prefix (e.g. global error handlers)
    """

    name: str
    services: Mapping[str, ServicePlugin] = field(default_factory=dict)
    scoped_services: Mapping[str, ScopedPlugin] = field(default_factory=dict)
    children: Tuple["AppPlugin", ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)
    configure: Optional[ConfigureFn] = None
    encapsulate: bool = True

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise PluginDefinitionFault(self.name, "name must be a non-empty string")
        if self.configure is not None and not callable(self.configure):
            raise PluginDefinitionFault(self.name, "configure must be callable")
        if not isinstance(self.options, Mapping):
            raise PluginDefinitionFault(self.name, "options must be a mapping")
        if not self.encapsulate and self.options.get("prefix"):
            raise PluginDefinitionFault(self.name, "a prefix requires an encapsulated plugin")

        children = tuple(self.children)
        for child in children:
            if not isinstance(child, AppPlugin):
                raise PluginDefinitionFault(
                    self.name, f"child {child!r} must be an application plugin"
                )

        object.__setattr__(self, "services", validate_dependencies(self.name, self.services))
        object.__setattr__(self, "scoped_services", _validate_scoped(self.name, self.scoped_services))
        object.__setattr__(self, "children", children)
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @property
    def prefix(self) -> str:
        return self.options.get("prefix", "") or ""

    async def register(
        self,
        runtime: Any,
        locator: Optional[Any] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Register this plugin and its whole subtree.

        Args:
            runtime: Runtime, ScopeHandle, or the runtime's Starlette app
            locator: Registry to publish into (defaults to the runtime's)
            options: Options inherited from the parent

        Raises:
            PhaseViolationFault: Outside booting, or from a configure callback
            DuplicateRegistrationFault: If a different plugin with the same
                name was already registered in the parent scope
        """
        handle = ensure_registerable(runtime, PluginKind.APPLICATION, self.name)
        await self._register(handle, locator if locator is not None else handle.context.locator, options)

    async def _register(self, handle: Any, locator: Any, inherited: Optional[Mapping[str, Any]]) -> None:
        parent = handle.scope

        existing = parent.registered(PluginKind.APPLICATION, self.name)
        if existing is self:
            logger.debug(f"Application '{self.name}' already registered in {parent.path}, skipping")
            return
        if existing is not None:
            raise DuplicateRegistrationFault(PluginKind.APPLICATION.label, self.name, scope=parent.path)

        parent.mark_registered_structural(self.name, self)

        options = self._merge_options(inherited)
        if self.encapsulate:
            scope = parent.child(self.name, self.prefix)
        else:
            scope = parent
        child_handle = handle.child(scope)
        logger.debug(f"Registering application '{self.name}' at {scope.prefix or '/'}")

        services = await load_dependencies(self.services, child_handle, locator)

        scoped: Dict[str, Any] = {}
        for key, dependency in self.scoped_services.items():
            scoped[key] = await dependency._register(child_handle, locator)

        shared = {k: v for k, v in options.items() if k != "prefix"}
        for child in self.children:
            await child._register(child_handle, locator, shared)

        if self.configure is not None:
            await maybe_await(
                self.configure(
                    child_handle.configuring(),
                    Dependencies(services, Resolved(scoped)),
                    MappingProxyType(options),
                )
            )

    def _merge_options(self, inherited: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        options = {k: v for k, v in (inherited or {}).items() if k != "prefix"}
        options.update(self.options)
        return options

    def __repr__(self) -> str:
        return f"<AppPlugin {self.name!r} prefix={self.prefix or '/'} children={len(self.children)}>"


def app_plugin(
    name: str,
    *,
    services: Optional[Mapping[str, ServicePlugin]] = None,
    scoped_services: Optional[Mapping[str, ScopedPlugin]] = None,
    children: Sequence[AppPlugin] = (),
    options: Optional[Mapping[str, Any]] = None,
    configure: Optional[ConfigureFn] = None,
    encapsulate: bool = True,
) -> AppPlugin:
    """Declare an application plugin."""
    return AppPlugin(
        name=name,
        services=services if services is not None else {},
        scoped_services=scoped_services if scoped_services is not None else {},
        children=tuple(children),
        options=options if options is not None else {},
        configure=configure,
        encapsulate=encapsulate,
    )
