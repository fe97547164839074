"""
Encapsulation scopes.

Every application plugin registration opens a child scope. A scope owns the
composed route prefix, the names registered directly in it (duplicate
detection), and the transient service instances produced for it.
"""

from typing import Any, Dict, List, Optional, Tuple

from .keys import PluginKey, PluginKind
from .utils import normalize_prefix


class EncapsulationScope:
    """Scope metadata, registrations and rules."""

    __slots__ = ("name", "prefix", "parent", "children", "_registered", "_transients")

    def __init__(self, name: str, prefix: str = "", parent: Optional["EncapsulationScope"] = None):
        self.name = name
        self.prefix = normalize_prefix(prefix)
        self.parent = parent
        self.children: List["EncapsulationScope"] = []
        self._registered: Dict[Tuple[PluginKind, str], Any] = {}
        self._transients: Dict[PluginKey, Any] = {}

    def child(self, name: str, prefix: str = "") -> "EncapsulationScope":
        """
        Open a nested scope.

        The child's prefix is composed from this scope's prefix, never from a
        previously composed child prefix, so a unit reached twice does not
        accumulate its own prefix.
        """
        scope = EncapsulationScope(name, self.prefix + normalize_prefix(prefix), parent=self)
        self.children.append(scope)
        return scope

    # ------------------------------------------------------------------
    # Duplicate detection
    # ------------------------------------------------------------------

    def has_registered(self, kind: PluginKind, name: str) -> bool:
        return (kind, name) in self._registered

    def registered(self, kind: PluginKind, name: str) -> Optional[Any]:
        """Plugin registered under ``name`` directly in this scope."""
        return self._registered.get((kind, name))

    def mark_registered(self, kind: PluginKind, name: str, plugin: Any) -> None:
        self._registered[(kind, name)] = plugin

    def has_registered_structural(self, name: str) -> bool:
        return self.has_registered(PluginKind.APPLICATION, name)

    def mark_registered_structural(self, name: str, plugin: Any) -> None:
        self.mark_registered(PluginKind.APPLICATION, name, plugin)

    # ------------------------------------------------------------------
    # Transient instances
    # ------------------------------------------------------------------

    def transient(self, key: PluginKey, default: Any = None) -> Any:
        return self._transients.get(key, default)

    def set_transient(self, key: PluginKey, value: Any) -> None:
        self._transients[key] = value

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        names = []
        scope: Optional[EncapsulationScope] = self
        while scope is not None:
            names.append(scope.name)
            scope = scope.parent
        return " > ".join(reversed(names))

    def render(self, indent: int = 0) -> str:
        """Render this scope and its descendants as an indented tree."""
        pad = "  " * indent
        lines = [f"{pad}{self.name} ({self.prefix or '/'})"]
        for (kind, name) in self._registered:
            if kind is not PluginKind.APPLICATION:
                lines.append(f"{pad}  - {kind.value}: {name}")
        for child in self.children:
            lines.append(child.render(indent + 1))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<EncapsulationScope {self.path} prefix={self.prefix or '/'}>"
