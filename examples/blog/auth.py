"""
Auth - bearer token service, the current-user scoped plugin and login route.
"""

from typing import Dict, Optional
import logging
import secrets

from starlette.responses import JSONResponse

from aviary import app_plugin, scoped_plugin, service_plugin


logger = logging.getLogger("blog.auth")


class AuthService:
    """Issues opaque bearer tokens for valid credentials."""

    def __init__(self, users, passwords, token_bytes: int = 32):
        self.users = users
        self.passwords = passwords
        self.token_bytes = token_bytes
        self._tokens: Dict[str, dict] = {}

    async def login(self, email: str, password: str) -> Optional[str]:
        user = await self.users.find_by_email(email)
        if user is None or not await self.passwords.compare(password, user.password):
            return None

        token = secrets.token_urlsafe(self.token_bytes)
        self._tokens[token] = {
            "id": user.id,
            "email": user.email,
            "username": user.username,
            "roles": list(user.roles),
        }
        return token

    async def verify_token(self, token: str) -> Optional[dict]:
        return self._tokens.get(token)

    def revoke_all(self) -> None:
        logger.info(f"Revoking {len(self._tokens)} token(s)")
        self._tokens.clear()


def create_auth_service_plugin(config, users_repository, password_manager):
    return service_plugin(
        "auth-service",
        lambda deps: AuthService(deps.users, deps.passwords, deps.config.token_bytes),
        dependencies={"config": config, "users": users_repository, "passwords": password_manager},
        teardown=lambda service: service.revoke_all(),
    )


def create_current_user_plugin(auth_service):
    """Scoped plugin resolving the user of the request's bearer token, or None."""

    async def produce(request, deps):
        scheme, _, token = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return await deps.auth.verify_token(token.strip())

    return scoped_plugin("current-user", produce, dependencies={"auth": auth_service})


def create_auth_routes(auth_service):
    def configure(app, deps, options):
        auth = deps.services.auth

        @app.post("/login")
        async def login(request):
            body = await request.json()
            email, password = body.get("email"), body.get("password")
            if not isinstance(email, str) or not isinstance(password, str):
                return JSONResponse({"message": "email and password are required"}, status_code=400)

            token = await auth.login(email, password)
            if token is None:
                return JSONResponse({"message": "Invalid email or password."}, status_code=401)
            return {"success": True, "token": token}

    return app_plugin(
        "auth-routes",
        services={"auth": auth_service},
        options={"prefix": "/auth"},
        configure=configure,
    )
