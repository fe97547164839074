"""
Aviary plugin system

Async-first resolution of named plugins into one boot graph:

- Service plugins: values produced once at boot (singleton or transient)
- Scoped plugins: values produced lazily, once per request
- Application plugins: composition nodes that nest, prefix and wire routes
- Typed registry keys and a boot-scoped locator
- Encapsulation scopes with per-scope duplicate detection
- Isolated test-mode resolution with cycle detection
"""

from .keys import (
    PluginKey,
    PluginKind,
)

from .locator import Locator

from .scopes import EncapsulationScope

from .request import RequestContext

from .service import (
    Lifetime,
    ServicePlugin,
    ServiceState,
    service_plugin,
)

from .scoped import (
    ScopedGetter,
    ScopedPlugin,
    scoped_plugin,
)

from .application import (
    AppPlugin,
    Dependencies,
    app_plugin,
)

from .utils import Resolved

__all__ = [
    # Registry
    "PluginKey",
    "PluginKind",
    "Locator",
    "EncapsulationScope",
    "RequestContext",
    "Resolved",

    # Services
    "Lifetime",
    "ServicePlugin",
    "ServiceState",
    "service_plugin",

    # Scoped services
    "ScopedGetter",
    "ScopedPlugin",
    "scoped_plugin",

    # Applications
    "AppPlugin",
    "Dependencies",
    "app_plugin",
]
