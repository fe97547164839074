"""
Blog configuration service.

Settings come from ``BLOG_*`` environment variables, optionally loaded from
a .env file first:

    BLOG_ADMIN_EMAIL=admin@example.com
    BLOG_ADMIN_PASSWORD=Password123$
    BLOG_CORS_ORIGINS=["http://localhost:5173"]
"""

from dataclasses import dataclass, field
from typing import List, Optional

from aviary import ConfigLoader, service_plugin


@dataclass
class BlogConfig:
    admin_email: str = "admin@example.com"
    admin_username: str = "admin"
    admin_password: str = "Password123$"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    token_bytes: int = 32


def load_blog_config(env_file: Optional[str] = None, **overrides) -> BlogConfig:
    loader = ConfigLoader.load(env_prefix="BLOG_", env_file=env_file, overrides=overrides)
    return loader.get_config("blog", BlogConfig)


def create_config_plugin(env_file: Optional[str] = None, **overrides):
    """Service plugin exposing the BlogConfig."""
    return service_plugin("config", lambda deps: load_blog_config(env_file, **overrides))
