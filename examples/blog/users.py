"""
Users - in-memory repository and account routes.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import re

from starlette.responses import JSONResponse

from aviary import app_plugin, service_plugin


PASSWORD_PATTERN = re.compile(r"^(?=.*?[A-Z])(?=.*?[a-z])(?=.*?[0-9])(?=.*?[#?!@$%^&*-]).{8,}$")


@dataclass
class User:
    id: int
    username: str
    email: str
    password: str
    roles: List[str] = field(default_factory=list)

    def public(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email, "roles": list(self.roles)}


class InMemoryUsersRepository:
    def __init__(self):
        self._users: Dict[str, User] = {}

    async def add(self, username: str, email: str, hashed_password: str, roles: Optional[List[str]] = None) -> User:
        user = User(len(self._users) + 1, username, email, hashed_password, list(roles or []))
        self._users[email] = user
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        return self._users.get(email)

    async def update_password(self, email: str, hashed_password: str) -> int:
        user = self._users.get(email)
        if user is None:
            return 0
        user.password = hashed_password
        return 1


def create_users_repository_plugin(config, password_manager):
    """Repository seeded with the configured admin account."""

    async def produce(deps):
        repo = InMemoryUsersRepository()
        await repo.add(
            deps.config.admin_username,
            deps.config.admin_email,
            await deps.passwords.hash(deps.config.admin_password),
            roles=["admin"],
        )
        return repo

    return service_plugin(
        "users-repository",
        produce,
        dependencies={"config": config, "passwords": password_manager},
    )


def create_users_routes(users_repository, password_manager, current_user):
    async def configure(app, deps, options):
        repo = deps.services.users
        manager = deps.services.passwords
        current = deps.scoped_services.current_user

        @app.get("/me")
        async def me(request):
            auth = await current.get(request)
            if auth is None:
                return JSONResponse({"message": "Unauthorized"}, status_code=401)
            user = await repo.find_by_email(auth["email"])
            return user.public()

        @app.put("/update-password")
        async def update_password(request):
            auth = await current.get(request)
            if auth is None:
                return JSONResponse({"message": "Unauthorized"}, status_code=401)

            body = await request.json()
            current_password = body.get("currentPassword", "")
            new_password = body.get("newPassword", "")

            if not PASSWORD_PATTERN.match(new_password):
                return JSONResponse(
                    {"message": "New password must have at least 8 characters, "
                                "an upper and a lower case letter, a digit and a symbol."},
                    status_code=400,
                )
            if new_password == current_password:
                return JSONResponse(
                    {"message": "New password cannot be the same as the current password."},
                    status_code=400,
                )

            user = await repo.find_by_email(auth["email"])
            if user is None or not await manager.compare(current_password, user.password):
                return JSONResponse({"message": "Invalid current password."}, status_code=401)

            await repo.update_password(user.email, await manager.hash(new_password))
            return {"message": "Password updated successfully"}

    return app_plugin(
        "users-routes",
        services={"users": users_repository, "passwords": password_manager},
        scoped_services={"current_user": current_user},
        options={"prefix": "/users"},
        configure=configure,
    )
