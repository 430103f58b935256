"""
Error Handling
==============

Exception taxonomy and the handlers that turn every failure into the
uniform ``{"error": "<reason>"}`` body.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# Headers attached to every webhook response, errors included.
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": (
        "authorization, x-client-info, apikey, content-type, "
        "x-supabase-client-platform, x-supabase-client-platform-version, "
        "x-supabase-client-runtime, x-supabase-client-runtime-version"
    ),
}

# Starlette's own reasons are title-cased ("Method Not Allowed").
_DEFAULT_MESSAGES = {
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
}


# =============================================================================
# Custom Exceptions
# =============================================================================

class AppException(HTTPException):
    """Base application exception carrying a caller-safe message."""

    def __init__(
        self,
        status_code: int,
        message: str,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message
        super().__init__(status_code=status_code, detail=message, headers=headers)


class ValidationError(AppException):
    """Malformed webhook payload."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class AuthenticationError(AppException):
    """Shared secret mismatch."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message)


class NotFoundError(AppException):
    """No matching resource (e.g. no user for the buyer email)."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class RateLimitError(AppException):
    """Per-address request quota exceeded."""

    def __init__(self, retry_after: int, message: str = "Too many requests"):
        self.retry_after = retry_after
        super().__init__(
            status.HTTP_429_TOO_MANY_REQUESTS,
            message,
            headers={"Retry-After": str(retry_after)},
        )


class ConfigurationError(AppException):
    """Deployment is missing required server-side configuration."""

    def __init__(self, message: str = "Server configuration error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


class PersistenceError(AppException):
    """Subscription store write failed; the event is left unprocessed."""

    def __init__(self, message: str):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


# =============================================================================
# Exception Handlers
# =============================================================================

def error_response(
    status_code: int,
    message: str,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Build the uniform error body with CORS headers."""
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers={**CORS_HEADERS, **(headers or {})},
    )


async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """Handler for AppException."""
    return error_response(exc.status_code, exc.message, exc.headers)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handler for framework-raised HTTP errors (404 route, 405 method)."""
    message = _DEFAULT_MESSAGES.get(exc.status_code, str(exc.detail))
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handler for request validation errors raised by FastAPI itself."""
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid payload")


async def global_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.error(
        "Unhandled error on %s %s: %s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc_info=exc,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
    )


def setup_exception_handlers(app):
    """
    Register exception handlers with FastAPI app.

    Usage:
        from wellness_api.core.errors import setup_exception_handlers
        setup_exception_handlers(app)
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
