"""
Example blog application built from aviary plugins.

Run it with ``aviary serve examples.blog:create_blog_app``.
"""

from .app import BlogPlugins, build_blog_plugins, create_blog_app

__all__ = ["BlogPlugins", "build_blog_plugins", "create_blog_app"]
