"""
Test helpers for the blog application.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from .app import create_blog_app
from .config import create_config_plugin
from .passwords import create_password_manager_plugin


TEST_PASSWORD = "Password123$"


class BlogTestApp:
    """A booted blog runtime plus login helpers."""

    def __init__(self, runtime):
        self.runtime = runtime

    async def inject(self, method: str, url: str, **kwargs):
        return await self.runtime.inject(method, url, **kwargs)

    async def login(self, email: str, password: str = TEST_PASSWORD) -> str:
        response = await self.inject("POST", "/api/auth/login", json={"email": email, "password": password})
        if response.status_code != 200:
            raise AssertionError(f"Login failed for {email}: {response.status_code} {response.text}")
        return response.json()["token"]

    async def inject_with_login(self, email: str, method: str, url: str, **kwargs):
        token = await self.login(email)
        headers = {**kwargs.pop("headers", {}), "authorization": f"Bearer {token}"}
        return await self.inject(method, url, headers=headers, **kwargs)


@asynccontextmanager
async def create_test_app(*, password_manager: Any = None, env_file: Optional[str] = None, **config):
    """
    Boot a blog runtime for one test and close it afterwards.

    Password hashing uses cheap argon2 parameters unless a password manager
    is given; ``config`` overrides BlogConfig fields.
    """
    runtime = await create_blog_app(
        env_file=env_file,
        password_manager=password_manager
        or create_password_manager_plugin(time_cost=1, memory_cost=8, parallelism=1),
        config=create_config_plugin(env_file, **config),
    )
    try:
        yield BlogTestApp(runtime)
    finally:
        await runtime.close()
