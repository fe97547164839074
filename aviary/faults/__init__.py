"""
Aviary faults - typed fault signals raised by the plugin engine.

Every engine error is a ``Fault``: it carries a stable code, a domain and a
severity, and is propagated unmodified to the caller (usually ``create_app``).

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
- Domain faults for configuration, resolution and shutdown
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    ConfigFault,
    ConfigMissingFault,
    ConfigInvalidFault,
    DIFault,
    PhaseViolationFault,
    DuplicateRegistrationFault,
    LifecycleMisuseFault,
    DependencyCycleFault,
    PluginDefinitionFault,
    TeardownFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # Config
    "ConfigFault",
    "ConfigMissingFault",
    "ConfigInvalidFault",

    # Resolution
    "DIFault",
    "PhaseViolationFault",
    "DuplicateRegistrationFault",
    "LifecycleMisuseFault",
    "DependencyCycleFault",
    "PluginDefinitionFault",

    # Shutdown
    "TeardownFault",
]
