"""
Plugin kinds and typed registry tokens.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar


T = TypeVar("T")


class PluginKind(str, Enum):
    """Kinds of plugins that can take part in one boot graph."""

    SERVICE = "service"          # Boot-time value, singleton or transient
    SCOPED = "scoped"            # Request-lifetime value
    APPLICATION = "application"  # Composition node that wires routes

    @property
    def label(self) -> str:
        """Human label used in error messages."""
        return _LABELS[self]


_LABELS = {
    PluginKind.SERVICE: "Service",
    PluginKind.SCOPED: "Scoped service",
    PluginKind.APPLICATION: "Application",
}


@dataclass(frozen=True, slots=True)
class PluginKey(Generic[T]):
    """
    Typed registry token.

    Two plugins of different kinds never collide even if they share a name,
    and the type parameter records what the registry stores under the key.
    """

    kind: PluginKind
    name: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name}"
