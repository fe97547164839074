"""Aviary CLI - Main Entry Point.

Commands:
    serve - Boot an application and serve it with uvicorn
    graph - Boot an application, print its plugin tree and close it
"""

from typing import Any, Optional
import asyncio
import importlib
import inspect
import logging
import math

import click
import uvicorn

from . import __cli_name__
from .. import __version__
from ..boot import create_app
from ..config import ConfigLoader, ServerConfig
from ..di.application import AppPlugin
from ..faults import Fault
from ..runtime import Runtime


logger = logging.getLogger("aviary.cli")


def load_target(target: str) -> Any:
    """
    Import ``module:attr``.

    Raises:
        click.BadParameter: If the module or attribute cannot be found
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attr', got '{target}'", param_hint="TARGET")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}", param_hint="TARGET") from e

    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise click.BadParameter(
                f"module '{module_name}' has no attribute '{attr}'", param_hint="TARGET"
            ) from None
    return obj


async def boot_target(obj: Any, server_config: Optional[ServerConfig] = None) -> Runtime:
    """Turn a loaded TARGET into a booted runtime."""
    if not isinstance(obj, AppPlugin) and callable(obj):
        obj = obj()
        if inspect.isawaitable(obj):
            obj = await obj

    if isinstance(obj, Runtime):
        return obj
    if isinstance(obj, AppPlugin):
        debug = server_config.debug if server_config is not None else False
        return await create_app(obj, server_options={"debug": debug})

    raise click.BadParameter(
        f"TARGET must be an application plugin or a factory returning one, got {type(obj).__name__}",
        param_hint="TARGET",
    )


def _configure_logging(verbose: bool, level: str = "info") -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--env-file", type=click.Path(dir_okay=False), default=".env", show_default=True,
              help=".env file to read AVIARY_* settings from")
@click.pass_context
def cli(ctx, verbose: bool, env_file: str):
    """Boot and serve plugin applications.

    \b
    Quick start:
      aviary graph examples.blog:create_blog_app
      aviary serve examples.blog:create_blog_app --port 8000
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["env_file"] = env_file


@cli.command("serve")
@click.argument("target")
@click.option("--host", type=str, help="Bind host (AVIARY_HOST)")
@click.option("--port", type=int, help="Bind port (AVIARY_PORT)")
@click.option("--log-level", type=click.Choice(["critical", "error", "warning", "info", "debug"]),
              help="Log level (AVIARY_LOG_LEVEL)")
@click.pass_context
def serve(ctx, target: str, host: Optional[str], port: Optional[int], log_level: Optional[str]):
    """
    Boot TARGET and serve it with uvicorn.

    Shutdown waits at most close_grace_delay seconds for in-flight requests
    before the close hooks run.

    Examples:
      aviary serve examples.blog:create_blog_app
      aviary serve myproject.app:root --host 0.0.0.0 --port 9000
    """
    overrides = {k: v for k, v in {"host": host, "port": port, "log_level": log_level}.items() if v is not None}
    try:
        config = ConfigLoader.load(env_file=ctx.obj["env_file"], overrides=overrides).server_config()
    except Fault as e:
        raise click.ClickException(str(e)) from e

    _configure_logging(ctx.obj["verbose"], config.log_level)
    obj = load_target(target)

    try:
        asyncio.run(_serve(obj, config))
    except Fault as e:
        logger.error(f"Boot failed: {e}")
        raise click.ClickException(str(e)) from e


async def _serve(obj: Any, config: ServerConfig) -> None:
    runtime = await boot_target(obj, config)
    server = uvicorn.Server(
        uvicorn.Config(
            runtime,
            host=config.host,
            port=config.port,
            log_level=config.log_level,
            lifespan="on",
            timeout_graceful_shutdown=math.ceil(config.close_grace_delay),
        )
    )
    try:
        await server.serve()
    finally:
        await runtime.close()


@cli.command("graph")
@click.argument("target")
@click.pass_context
def graph(ctx, target: str):
    """
    Boot TARGET, print its plugin tree and routes, then close it.

    Examples:
      aviary graph examples.blog:create_blog_app
    """
    _configure_logging(ctx.obj["verbose"], "warning")
    obj = load_target(target)

    try:
        tree, routes = asyncio.run(_graph(obj))
    except Fault as e:
        raise click.ClickException(str(e)) from e

    click.echo(tree)
    if routes:
        click.echo()
        click.echo("Routes:")
        for path in routes:
            click.echo(f"  {path}")


async def _graph(obj: Any):
    runtime = await boot_target(obj)
    try:
        return runtime.print_plugins(), runtime.routes
    finally:
        await runtime.close()


def main():
    """Entry point for `aviary` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
