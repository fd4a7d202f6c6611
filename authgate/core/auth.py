"""Session cookie transport and FastAPI auth dependencies.

The services deal in raw tokens only; this module is the one place that knows
the token rides in a cookie.

Cookie contract:
- fixed name (AUTH_COOKIE_NAME), HttpOnly, SameSite=Lax, Path=/
- Secure in production
- value is the raw hex token, expiry is the session's expires_at
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import Depends, Request

from authgate.adapters.storage.base import PublicUser
from authgate.core.config import Settings, settings
from authgate.core.errors import AuthenticationAppError
from authgate.services.container import AuthContainer

logger = logging.getLogger(__name__)


def session_cookie_kwargs(cfg: Settings, token: str, expires_at: datetime) -> dict[str, Any]:
    """Keyword arguments for ``Response.set_cookie``."""
    return {
        "key": cfg.auth.cookie_name,
        "value": token,
        "expires": expires_at,
        "httponly": True,
        "secure": cfg.is_production,
        "samesite": "lax",
        "path": "/",
    }


def clear_session_cookie_kwargs(cfg: Settings) -> dict[str, Any]:
    """Keyword arguments for ``Response.delete_cookie``."""
    return {
        "key": cfg.auth.cookie_name,
        "httponly": True,
        "secure": cfg.is_production,
        "samesite": "lax",
        "path": "/",
    }


def get_container(request: Request) -> AuthContainer:
    """FastAPI dependency returning the app's service container."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Auth container not initialized; is the app lifespan running?")
    return container


def get_session_token(request: Request) -> str | None:
    cfg = getattr(request.app.state, "settings", settings)
    return request.cookies.get(cfg.auth.cookie_name) or None


async def get_current_user(
    request: Request,
    container: Annotated[AuthContainer, Depends(get_container)],
) -> PublicUser | None:
    """Resolve the session cookie to a user; None when absent or invalid.

    Never raises on storage trouble: the request just proceeds unauthenticated.
    """
    return await container.auth.current_user(get_session_token(request))


async def require_user(
    user: Annotated[PublicUser | None, Depends(get_current_user)],
) -> PublicUser:
    """FastAPI dependency for protected routes.

    Raises:
        AuthenticationAppError: ``not_authenticated``; the exception handler
            answers 401 and clears the stale cookie.
    """
    if user is None:
        raise AuthenticationAppError(
            code="not_authenticated",
            message="Sign in to continue.",
        )
    return user
