"""
Fault base type, severities and domains of the plugin engine.

Engine errors are raised as ``Fault`` subclasses so callers can branch on a
stable ``code`` instead of parsing messages. ``str(fault)`` is
``"[CODE] message"``; ``to_dict()`` gives the same data for log records.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class Severity(str, Enum):
    """How loudly a fault should be reported."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Area of the engine a fault belongs to.

    Compared by name, and equal to its plain string name, so
    ``fault.domain == "di"`` holds for a resolution fault.
    """

    __slots__ = ("name", "description")

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description

    @property
    def value(self) -> str:
        return self.name

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return other.name == self.name
        return isinstance(other, str) and other == self.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<FaultDomain {self.name}>"


FaultDomain.CONFIG = FaultDomain("config", "Invalid or missing settings")
FaultDomain.DI = FaultDomain("di", "Plugin definition, registration and resolution")
FaultDomain.LIFECYCLE = FaultDomain("lifecycle", "Ready and close hooks")
FaultDomain.SYSTEM = FaultDomain("system", "Anything outside the other domains")


# Severity and retry policy applied when a fault does not set its own.
DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.DI: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.LIFECYCLE: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.SYSTEM: {"severity": Severity.FATAL, "retryable": False},
}

_FALLBACK = {"severity": Severity.ERROR, "retryable": False}


class Fault(Exception):
    """
    Structured engine error.

    Subclasses either pass ``code``/``message``/``domain`` to ``__init__``
    or declare them as class attributes.

        raise Fault(code="PLUGIN_BROKEN", message="db could not start", domain=FaultDomain.DI)
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code or type(self).code
        self.message = message or type(self).message
        self.domain = domain or type(self).domain
        if not (self.code and self.message and self.domain):
            raise TypeError(f"{type(self).__name__} missing required code, message, or domain")

        super().__init__(self.message)

        policy = DOMAIN_DEFAULTS.get(self.domain, _FALLBACK)
        self.severity = severity or policy["severity"]
        self.retryable = policy["retryable"] if retryable is None else retryable
        self.public = public
        self.metadata = dict(metadata or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code} domain={self.domain} severity={self.severity.value}>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }
