"""
Lifecycle - boot phases, the boot context, and ready/close hooks.

One ``BootContext`` exists per ``create_app`` invocation. It is threaded
through every ``register`` call (via the runtime handle) instead of living in
process-wide flags, and it is the only place the current phase is recorded.
"""

from typing import Any, Awaitable, Callable, List, Optional
from dataclasses import dataclass
from enum import Enum
import logging

from .faults import TeardownFault
from .di.utils import maybe_await


logger = logging.getLogger("aviary.lifecycle")


class LifecyclePhase(Enum):
    """Lifecycle phases."""
    INIT = "init"
    BOOTING = "booting"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class LifecycleHook:
    """
    Lifecycle hook registration.

    Ready hooks run once when the runtime becomes ready; close hooks run
    once when it shuts down.
    """

    name: str
    callback: Callable[[], Any]
    phase: str = "close"


class Lifecycle:
    """
    Ready and close hooks of one runtime.

    Ready hooks run in registration order. Close hooks run in reverse order
    (LIFO), so a service is torn down before the services it depends on.
    """

    __slots__ = ("_ready_hooks", "_close_hooks")

    def __init__(self):
        self._ready_hooks: List[LifecycleHook] = []
        self._close_hooks: List[LifecycleHook] = []

    def on_ready(self, callback: Callable[[], Any], *, name: str = "ready_hook") -> None:
        """Register a callback to run when the runtime becomes ready."""
        self._ready_hooks.append(LifecycleHook(name=name, callback=callback, phase="ready"))

    def on_close(self, callback: Callable[[], Any], *, name: str = "close_hook") -> None:
        """Register a callback to run when the runtime shuts down."""
        self._close_hooks.append(LifecycleHook(name=name, callback=callback, phase="close"))

    @property
    def close_hook_names(self) -> List[str]:
        return [hook.name for hook in self._close_hooks]

    async def run_ready_hooks(self) -> None:
        """Run all ready hooks in order. The first failure propagates as-is."""
        hooks, self._ready_hooks = self._ready_hooks, []
        for hook in hooks:
            logger.debug(f"Running ready hook '{hook.name}'")
            await maybe_await(hook.callback())

    async def run_close_hooks(self) -> None:
        """
        Run all close hooks in LIFO order.

        Every hook runs even if an earlier one fails. A single failure is then
        re-raised as is; several are surfaced together.

        Raises:
            Exception: The error of the only close hook that raised
            TeardownFault: If more than one close hook raised
        """
        hooks, self._close_hooks = self._close_hooks, []
        failures = []

        for hook in reversed(hooks):
            try:
                await maybe_await(hook.callback())
            except Exception as e:
                logger.error(f"Close hook '{hook.name}' failed: {e!r}")
                failures.append((hook.name, e))

        if len(failures) == 1:
            raise failures[0][1]
        if failures:
            raise TeardownFault(failures) from failures[0][1]

    def clear(self) -> None:
        """Clear all hooks."""
        self._ready_hooks.clear()
        self._close_hooks.clear()


class BootContext:
    """
    Phase and registry of one boot pass.

    Attributes:
        phase: Current lifecycle phase
        locator: Registry of resolved plugin values
        lifecycle: Ready/close hooks of the owning runtime
        booted: True once the runtime has been ready at least once
    """

    __slots__ = ("phase", "locator", "lifecycle", "booted", "name")

    def __init__(self, locator: Any, lifecycle: Optional[Lifecycle] = None, *, name: str = "app"):
        self.phase = LifecyclePhase.INIT
        self.locator = locator
        self.lifecycle = lifecycle or Lifecycle()
        self.booted = False
        self.name = name

    @property
    def booting(self) -> bool:
        return self.phase is LifecyclePhase.BOOTING

    def begin_boot(self) -> None:
        if self.phase is not LifecyclePhase.INIT:
            raise RuntimeError(
                f"Cannot boot from phase {self.phase.value}. Must be in INIT phase."
            )
        self.phase = LifecyclePhase.BOOTING
        logger.info(f"Booting '{self.name}'...")

    async def mark_ready(self) -> None:
        """Leave the booting phase and run ready hooks. Idempotent."""
        if self.phase is LifecyclePhase.READY:
            return
        if self.phase is not LifecyclePhase.BOOTING:
            raise RuntimeError(
                f"Cannot become ready from phase {self.phase.value}. Must be in BOOTING phase."
            )
        self.phase = LifecyclePhase.READY
        self.booted = True
        await self.lifecycle.run_ready_hooks()
        logger.info(f"'{self.name}' is ready")

    async def shutdown(self) -> None:
        """Run close hooks once. Teardown failures propagate to the caller."""
        if self.phase in (LifecyclePhase.STOPPING, LifecyclePhase.STOPPED):
            logger.debug("Already stopped")
            return

        self.phase = LifecyclePhase.STOPPING
        logger.info(f"Stopping '{self.name}'...")
        try:
            await self.lifecycle.run_close_hooks()
        finally:
            self.phase = LifecyclePhase.STOPPED
        logger.info(f"'{self.name}' stopped")

    async def abort(self) -> None:
        """
        Roll back a failed boot pass.

        Close hooks of already-produced services run; their failures are
        logged and never replace the error that aborted the boot.
        """
        self.phase = LifecyclePhase.ERROR
        logger.info("Rolling back produced services...")
        try:
            await self.lifecycle.run_close_hooks()
        except Exception as e:
            logger.error(f"Rollback incomplete: {e!r}")
