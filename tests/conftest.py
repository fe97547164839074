"""
Shared test fixtures and helpers for the Aviary test suite.
"""

from typing import Any, List, Optional

import pytest

from aviary import app_plugin, create_app


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    headers: Optional[List[tuple]] = None,
    state: Optional[dict] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or [])
    ]
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": b"",
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }
    if state is not None:
        scope["state"] = state
    return scope


# ============================================================================
# Plugin Helpers
# ============================================================================


class Calls:
    """Records how often a produce/teardown callable ran."""

    def __init__(self):
        self.count = 0
        self.args: List[Any] = []

    def returning(self, value_factory):
        def produce(*args):
            self.count += 1
            self.args.append(args)
            return value_factory(*args)
        return produce


async def boot(*, services=None, scoped_services=None, children=(), configure=None, **kwargs):
    """Boot a root application plugin built from the given parts."""
    root = app_plugin(
        "root",
        services=services,
        scoped_services=scoped_services,
        children=children,
        configure=configure,
    )
    return await create_app(root, **kwargs)


@pytest.fixture
def calls():
    return Calls()
