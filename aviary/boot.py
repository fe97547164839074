"""
Boot - create a runtime and drive one boot pass.

``create_app`` is the only supported way to get a booted runtime:

    runtime = await create_app(root)
    response = await runtime.inject("GET", "/health")
    await runtime.close()
"""

from typing import Any, Callable, Mapping, Optional
import logging

from .di.application import AppPlugin
from .di.utils import maybe_await
from .runtime import Runtime


logger = logging.getLogger("aviary.boot")

RegistrationHook = Callable[[Any, Any], Any]


async def create_app(
    root_plugin: AppPlugin,
    *,
    server_options: Optional[Mapping[str, Any]] = None,
    on_runtime_created: Optional[RegistrationHook] = None,
    on_root_registered: Optional[RegistrationHook] = None,
) -> Runtime:
    """
    Boot ``root_plugin`` into a new runtime.

    Args:
        root_plugin: Root application plugin
        server_options: Host options (``name``, ``debug``, ``middleware``,
            ``exception_handlers``)
        on_runtime_created: ``hook(handle, locator)`` run before the root is
            registered; may register infrastructure services and middleware
        on_root_registered: ``hook(handle, locator)`` run after the root is
            registered, still during booting

    Returns:
        The runtime, in the READY phase

    Raises:
        Whatever the boot pass raised, unmodified. Close hooks of services
        produced before the failure have run by then.
    """
    options = dict(server_options or {})
    runtime = Runtime(
        name=options.get("name", root_plugin.name),
        debug=options.get("debug", False),
        middleware=options.get("middleware"),
        exception_handlers=options.get("exception_handlers"),
    )
    context = runtime.context
    locator = context.locator
    context.begin_boot()

    try:
        if on_runtime_created is not None:
            await maybe_await(on_runtime_created(runtime.root, locator))

        await root_plugin.register(runtime.root, locator)

        if on_root_registered is not None:
            await maybe_await(on_root_registered(runtime.root, locator))

        await runtime.ready()
    except BaseException as e:
        logger.error(f"Boot of '{runtime.name}' failed: {e}")
        await context.abort()
        raise

    logger.info(f"Registered {len(locator)} plugin values, {len(runtime.routes)} routes")
    return runtime
