"""
Locator - the registry of one boot pass.

Maps typed plugin keys to resolved values (service props, scoped getters).
Only mutated during the single boot pass, so no lock is needed; the only
coordination is the in-flight table that makes a concurrent second resolution
of the same key wait for the first instead of producing again.
"""

from typing import Any, Dict, Iterator, Optional
import asyncio

from .keys import PluginKey, PluginKind


_MISSING = object()


class Locator:
    """
    Boot-scoped registry.

    Created fresh by ``create_app`` and discarded with the runtime.
    """

    __slots__ = ("_values", "_owners", "_pending")

    def __init__(self):
        self._values: Dict[PluginKey, Any] = {}
        self._owners: Dict[PluginKey, Any] = {}
        self._pending: Dict[PluginKey, asyncio.Future] = {}

    def has(self, key: PluginKey) -> bool:
        return key in self._values

    def get(self, key: PluginKey, default: Any = _MISSING) -> Any:
        """
        Get the value stored under ``key``.

        Raises:
            KeyError: If nothing is stored and no default is given
        """
        value = self._values.get(key, default)
        if value is _MISSING:
            raise KeyError(str(key))
        return value

    def set(self, key: PluginKey, value: Any, owner: Any = None) -> None:
        self._values[key] = value
        self._owners[key] = owner

    def owner(self, key: PluginKey) -> Optional[Any]:
        """Plugin instance that produced the value under ``key``."""
        return self._owners.get(key)

    # ------------------------------------------------------------------
    # In-flight resolution
    # ------------------------------------------------------------------

    def pending(self, key: PluginKey) -> Optional[asyncio.Future]:
        return self._pending.get(key)

    def begin(self, key: PluginKey) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        return future

    def complete(self, key: PluginKey, value: Any, owner: Any = None) -> None:
        self.set(key, value, owner)
        future = self._pending.pop(key, None)
        if future is not None and not future.done():
            future.set_result(value)

    def fail(self, key: PluginKey, error: BaseException) -> None:
        future = self._pending.pop(key, None)
        if future is not None and not future.done():
            future.set_exception(error)
            # Waiters still receive the error; nobody waiting is not an error.
            future.exception()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def keys(self, kind: Optional[PluginKind] = None) -> Iterator[PluginKey]:
        for key in self._values:
            if kind is None or key.kind is kind:
                yield key

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"<Locator {len(self._values)} entries, {len(self._pending)} pending>"
