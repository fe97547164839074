"""
Aviary - plugin dependency-injection and lifecycle engine for Starlette.

Declare services, scoped services and application plugins; ``create_app``
resolves them into a booted runtime:

- Service plugins: boot-time values with teardown hooks
- Scoped plugins: per-request values, memoized for the request
- Application plugins: nested, prefixed composition of routes
- Faults: typed, coded errors for every boot-graph violation
"""

__version__ = "0.1.0"

# ============================================================================
# Plugins
# ============================================================================

from .di import (
    AppPlugin,
    Dependencies,
    Lifetime,
    Locator,
    PluginKey,
    PluginKind,
    Resolved,
    ScopedGetter,
    ScopedPlugin,
    ServicePlugin,
    app_plugin,
    scoped_plugin,
    service_plugin,
)

# ============================================================================
# Runtime & Boot
# ============================================================================

from .lifecycle import BootContext, Lifecycle, LifecyclePhase
from .runtime import RequestContextMiddleware, Runtime, ScopeHandle
from .boot import create_app

# ============================================================================
# Configuration
# ============================================================================

from .config import ConfigLoader, ServerConfig

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigInvalidFault,
    ConfigMissingFault,
    DependencyCycleFault,
    DuplicateRegistrationFault,
    LifecycleMisuseFault,
    PhaseViolationFault,
    PluginDefinitionFault,
    TeardownFault,
)

__all__ = [
    "__version__",

    # Plugins
    "AppPlugin",
    "Dependencies",
    "Lifetime",
    "Locator",
    "PluginKey",
    "PluginKind",
    "Resolved",
    "ScopedGetter",
    "ScopedPlugin",
    "ServicePlugin",
    "app_plugin",
    "scoped_plugin",
    "service_plugin",

    # Runtime & boot
    "BootContext",
    "Lifecycle",
    "LifecyclePhase",
    "RequestContextMiddleware",
    "Runtime",
    "ScopeHandle",
    "create_app",

    # Configuration
    "ConfigLoader",
    "ServerConfig",

    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigInvalidFault",
    "ConfigMissingFault",
    "DependencyCycleFault",
    "DuplicateRegistrationFault",
    "LifecycleMisuseFault",
    "PhaseViolationFault",
    "PluginDefinitionFault",
    "TeardownFault",
]
