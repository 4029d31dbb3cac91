"""
FastAPI application entrypoint for the account portal.
"""

from __future__ import annotations

import logging
import time
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from account_portal.api.routes import error_response
from account_portal.api.routes import router as api_router
from account_portal.core.config import get_settings
from account_portal.core.logging import configure_logging

logger = logging.getLogger(__name__)

PROTECTED_PREFIXES = ("/dashboard", "/profile")

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "origin-when-cross-origin",
}


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Account Portal",
        version="0.1.0",
        description="User administration backed by a hosted identity provider.",
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if request.url.path.startswith(PROTECTED_PREFIXES):
            response.headers["X-Protected-Route"] = "true"
            response.headers["X-Server-Time"] = str(int(time.time() * 1000))
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_body(request: Request, exc: RequestValidationError):
        logger.warning("Rejected request body for %s: %s", request.url.path, exc.errors())
        return error_response(HTTPStatus.BAD_REQUEST, "Invalid request body")

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
