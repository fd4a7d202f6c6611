"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → 400/401/409/429/503
- Unexpected Exception → generic 500 (safety net)
- Storage outages never leak driver detail; the classification goes to logs
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from authgate.core.auth import clear_session_cookie_kwargs
from authgate.core.config import settings
from authgate.core.errors import (
    AppError,
    AuthenticationAppError,
    AuthStorageUnavailableError,
    DuplicateEmailError,
    RateLimitExceededError,
)
from authgate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, DuplicateEmailError):
        return 409
    if isinstance(exc, RateLimitExceededError):
        return 429
    if isinstance(exc, AuthStorageUnavailableError):
        return 503
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Response body: ``{"error": {"code", "message", "request_id", "details"?}}``.
    Storage errors omit details (they only matter to operators).
    """
    status_code = _status_for(exc)
    cfg = getattr(request.app.state, "settings", settings)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details and not isinstance(exc, AuthStorageUnavailableError):
        error_content["details"] = exc.details

    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitExceededError) and cfg.rate_limit.include_headers:
        headers["Retry-After"] = str(exc.retry_after_seconds)
        if exc.limit is not None:
            headers["X-RateLimit-Limit"] = str(exc.limit)
            headers["X-RateLimit-Remaining"] = "0"
        if exc.reset_at is not None:
            headers["X-RateLimit-Reset"] = str(int(exc.reset_at))

    response = JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )
    if isinstance(exc, AuthenticationAppError) and exc.code == "not_authenticated":
        response.delete_cookie(**clear_session_cookie_kwargs(cfg))
    return response


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Order matters: specific handlers registered before general fallback.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
