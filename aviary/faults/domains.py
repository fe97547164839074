"""
Aviary faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- DI faults (phase, duplicate, lifecycle misuse, cycles, definitions)
- LIFECYCLE faults (teardown)
"""

from typing import Any, Optional, Sequence

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=severity,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class ConfigMissingFault(ConfigFault):
    """Required configuration is missing."""

    def __init__(self, key: str, **kwargs):
        super().__init__(
            code="CONFIG_MISSING",
            message=f"Required configuration key '{key}' is missing",
            metadata={"key": key, **kwargs.get("metadata", {})},
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# DI Faults
# ============================================================================

class DIFault(Fault):
    """Base class for plugin resolution faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.DI,
            severity=severity,
            retryable=False,
            public=False,
            metadata=metadata,
        )


class PhaseViolationFault(DIFault):
    """Operation attempted outside the lifecycle phase that permits it."""

    def __init__(self, message: str, *, plugin: Optional[str] = None, phase: Optional[str] = None):
        super().__init__(
            code="PHASE_VIOLATION",
            message=message,
            metadata={"plugin": plugin, "phase": phase},
        )


class DuplicateRegistrationFault(DIFault):
    """Same plugin name registered twice within one encapsulation scope."""

    def __init__(self, kind_label: str, name: str, *, scope: Optional[str] = None):
        super().__init__(
            code="DUPLICATE_REGISTRATION",
            message=(
                f"{kind_label} plugin with the name '{name}' has already been "
                f"registered on this encapsulation context."
            ),
            metadata={"kind": kind_label, "plugin": name, "scope": scope},
        )


class LifecycleMisuseFault(DIFault):
    """Test-mode resolution mixed with real registration."""

    def __init__(self, message: str, *, plugin: Optional[str] = None):
        super().__init__(
            code="LIFECYCLE_MISUSE",
            message=message,
            metadata={"plugin": plugin},
        )


class DependencyCycleFault(DIFault):
    """Circular dependency detected while resolving plugins."""

    def __init__(self, cycle: Sequence[str]):
        cycle = list(cycle)
        super().__init__(
            code="DEPENDENCY_CYCLE",
            message=f"Circular dependency detected: {' -> '.join(cycle)}",
            metadata={"cycle": cycle},
        )
        self.cycle = cycle


class PluginDefinitionFault(DIFault):
    """Plugin definition rejected at construction time."""

    def __init__(self, name: Any, reason: str):
        super().__init__(
            code="INVALID_PLUGIN",
            message=f"Invalid plugin definition '{name}': {reason}",
            metadata={"plugin": name, "reason": reason},
        )


# ============================================================================
# LIFECYCLE Faults
# ============================================================================

class TeardownFault(Fault):
    """One or more teardown hooks failed during shutdown."""

    def __init__(self, failures: Sequence[tuple[str, BaseException]]):
        failures = list(failures)
        details = "; ".join(f"{name}: {error!r}" for name, error in failures)
        super().__init__(
            code="TEARDOWN_FAILED",
            message=f"Teardown failed for {len(failures)} hook(s): {details}",
            domain=FaultDomain.LIFECYCLE,
            severity=Severity.ERROR,
            retryable=False,
            metadata={"hooks": [name for name, _ in failures]},
        )
        self.failures = failures
