"""
Argon2 password manager.

Hashing runs in a worker thread so the event loop is not blocked.
"""

import asyncio

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from aviary import service_plugin


class Argon2PasswordManager:
    """Hash and compare passwords with argon2id."""

    def __init__(self, time_cost: int = 2, memory_cost: int = 19456, parallelism: int = 1):
        self.hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    async def hash(self, value: str) -> str:
        return await asyncio.to_thread(self.hasher.hash, value)

    async def compare(self, value: str, hashed: str) -> bool:
        try:
            return await asyncio.to_thread(self.hasher.verify, hashed, value)
        except (VerificationError, InvalidHashError):
            return False


def create_password_manager_plugin(**params):
    """
    Service plugin exposing an Argon2PasswordManager.

    ``params`` are passed to the manager (tests use low cost parameters).
    """
    return service_plugin("password-manager", lambda deps: Argon2PasswordManager(**params))
