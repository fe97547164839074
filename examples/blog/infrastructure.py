"""
Infrastructure plugins registered before the root application.
"""

import logging

from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from aviary import app_plugin


logger = logging.getLogger("blog.infrastructure")


async def http_error(request, exc: HTTPException):
    if exc.status_code == 404:
        logger.warning(f"Resource not found: {request.method} {request.url.path}")
        return JSONResponse({"message": "Not Found"}, status_code=404)

    message = exc.detail if exc.status_code < 500 else "Internal Server Error"
    return JSONResponse({"message": message}, status_code=exc.status_code, headers=exc.headers)


async def unhandled_error(request, exc: Exception):
    logger.error(
        f"Unhandled error occurred: {exc!r} ({request.method} {request.url.path})",
        exc_info=exc,
    )
    return JSONResponse({"message": "Internal Server Error"}, status_code=500)


def _configure_error_handler(app, deps, options):
    app.add_exception_handler(HTTPException, http_error)
    app.add_exception_handler(Exception, unhandled_error)


error_handler_plugin = app_plugin(
    "global-error-handler",
    configure=_configure_error_handler,
    encapsulate=False,
)


def create_cors_plugin(config):
    def configure(app, deps, options):
        app.add_middleware(
            CORSMiddleware,
            allow_origins=deps.services.config.cors_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["authorization", "content-type"],
        )

    return app_plugin("cors", services={"config": config}, configure=configure, encapsulate=False)


async def register_infrastructure(handle, locator, config):
    await error_handler_plugin.register(handle, locator)
    await create_cors_plugin(config).register(handle, locator)
