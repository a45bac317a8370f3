"""
CSRF Protection Middleware for FastAPI

Implements double-submit cookie pattern for CSRF protection.
- Generates a CSRF token and sets it as a cookie
- Validates that the X-CSRF-Token header matches the cookie value
- Applies to state-changing methods (POST, PUT, PATCH, DELETE)
- Sign-in and password recovery endpoints are exempt (no session exists yet)

Set CSRF_ENABLED=false only for development/testing.
"""

import logging
import secrets
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .config import COOKIE_SECURE

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_COOKIE_MAX_AGE = 86400

PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

EXEMPT_PATHS: list[str] = [
    "/api/auth/login",
    "/api/auth/register-practice",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
    "/api/portal/auth/login",
    "/api/portal/activate",
    "/api/portal/forgot-password",
    "/api/portal/reset-password",
    "/api/csrf-token",
    "/health",
    "/docs",
    "/openapi.json",
]


def generate_csrf_token() -> str:
    """Generate a cryptographically secure CSRF token"""
    return secrets.token_urlsafe(32)


def is_path_exempt(path: str) -> bool:
    """Check if a path is exempt from CSRF protection"""
    return any(path == exempt or path.startswith(exempt + "/") for exempt in EXEMPT_PATHS)


def set_csrf_cookie(response: Response, token: str) -> None:
    # Readable by the frontend so it can echo the value in the header
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,
        secure=COOKIE_SECURE,
        samesite="strict",
        max_age=CSRF_COOKIE_MAX_AGE,
        path="/",
    )


def _reject(request: Request, reason: str, detail: str) -> JSONResponse:
    logger.warning(f"🚫 CSRF: {reason} for {request.method} {request.url.path}")
    return JSONResponse(status_code=403, content={"detail": detail})


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    CSRF Protection Middleware using double-submit cookie pattern.

    1. On any request, if no CSRF cookie exists, generate one and set it
    2. For state-changing requests (POST/PUT/PATCH/DELETE) the X-CSRF-Token
       header must be present and match the csrf_token cookie
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        csrf_cookie = request.cookies.get(CSRF_COOKIE_NAME)

        if request.method in PROTECTED_METHODS and not is_path_exempt(request.url.path):
            csrf_header = request.headers.get(CSRF_HEADER_NAME)

            if not csrf_cookie:
                return _reject(request, "Missing cookie", "CSRF token missing. Please refresh the page and try again.")

            if not csrf_header:
                return _reject(
                    request, "Missing header", "CSRF token header missing. Please refresh the page and try again."
                )

            if not secrets.compare_digest(csrf_cookie, csrf_header):
                return _reject(request, "Token mismatch", "CSRF token invalid. Please refresh the page and try again.")

            logger.debug(f"✅ CSRF: Valid token for {request.method} {request.url.path}")

        response = await call_next(request)

        if not csrf_cookie and CSRF_COOKIE_NAME not in response.headers.get("set-cookie", ""):
            set_csrf_cookie(response, generate_csrf_token())
            logger.debug("🔑 CSRF: Set new token cookie")

        return response
