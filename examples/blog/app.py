"""
Blog application wiring.

    runtime = await create_blog_app()
    print(runtime.print_plugins())
"""

from dataclasses import dataclass
from typing import Any, Optional

from aviary import AppPlugin, Runtime, app_plugin, create_app

from .auth import create_auth_routes, create_auth_service_plugin, create_current_user_plugin
from .config import create_config_plugin
from .infrastructure import register_infrastructure
from .passwords import create_password_manager_plugin
from .posts import create_posts_repository_plugin, create_posts_routes
from .users import create_users_repository_plugin, create_users_routes


@dataclass
class BlogPlugins:
    """Plugin instances of one blog boot graph."""

    config: Any
    password_manager: Any
    users_repository: Any
    posts_repository: Any
    auth_service: Any
    current_user: Any
    root: AppPlugin


def build_blog_plugins(
    *,
    env_file: Optional[str] = None,
    password_manager: Any = None,
    config: Any = None,
) -> BlogPlugins:
    config = config or create_config_plugin(env_file)
    password_manager = password_manager or create_password_manager_plugin()
    users_repository = create_users_repository_plugin(config, password_manager)
    posts_repository = create_posts_repository_plugin()
    auth_service = create_auth_service_plugin(config, users_repository, password_manager)
    current_user = create_current_user_plugin(auth_service)

    root = app_plugin(
        "application",
        options={"prefix": "/api"},
        children=[
            create_users_routes(users_repository, password_manager, current_user),
            create_auth_routes(auth_service),
            create_posts_routes(posts_repository, current_user),
        ],
    )
    return BlogPlugins(
        config=config,
        password_manager=password_manager,
        users_repository=users_repository,
        posts_repository=posts_repository,
        auth_service=auth_service,
        current_user=current_user,
        root=root,
    )


async def create_blog_app(
    *,
    env_file: Optional[str] = ".env",
    password_manager: Any = None,
    config: Any = None,
    debug: bool = False,
) -> Runtime:
    """Boot the blog application."""
    plugins = build_blog_plugins(env_file=env_file, password_manager=password_manager, config=config)

    async def on_runtime_created(handle, locator):
        await register_infrastructure(handle, locator, plugins.config)

        @handle.get("/")
        async def health(request):
            return {"ok": True}

        @handle.get("/error")
        async def error(request):
            raise RuntimeError("Kaboom!")

    return await create_app(
        plugins.root,
        server_options={"debug": debug},
        on_runtime_created=on_runtime_created,
    )
