"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Rate limiting strategy:
- Fixed-window limit per client IP for credential endpoints (sign-in/sign-up).
- Sign-in additionally counts per target email, so one account cannot be
  brute-forced from many addresses. A successful sign-in clears that email's
  count.
- The limiter lives on the app's container, so every app instance (and every
  test) gets its own counters.
- Limits are per process; several workers each count on their own.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from authgate.core.auth import get_container
from authgate.core.logging import hash_identifier
from authgate.services.container import AuthContainer


def _build_rate_limit_key(request: Request, scope: str) -> str:
    client_host = request.client.host if request.client else "unknown"
    return f"{scope}:ip:{client_host}"


def _build_email_rate_limit_key(request: Request, email: str) -> str:
    return f"{request.url.path}:email:{hash_identifier(email)}"


async def enforce_auth_rate_limit(
    request: Request,
    container: Annotated[AuthContainer, Depends(get_container)],
) -> None:
    """FastAPI dependency gating credential endpoints.

    Runs before the route body does any work. Consumes one unit of the
    caller's budget.

    Raises:
        RateLimitExceededError: Rendered as 429 with Retry-After by the
            exception handlers.
    """
    if not container.settings.rate_limit.enabled:
        return

    key = _build_rate_limit_key(request, scope=request.url.path)
    container.auth.enforce_rate_limit(key, container.auth_rate_limit)


def enforce_email_rate_limit(request: Request, container: AuthContainer, email: str) -> None:
    """Count one attempt against ``email`` (already normalized).

    The key holds a digest of the address, never the address itself.
    """
    if not container.settings.rate_limit.enabled:
        return

    key = _build_email_rate_limit_key(request, email)
    container.auth.enforce_rate_limit(key, container.auth_rate_limit)


def reset_email_rate_limit(request: Request, container: AuthContainer, email: str) -> None:
    """Clear the attempts counted against ``email`` after it signed in."""
    if not container.settings.rate_limit.enabled:
        return

    container.auth.reset_rate_limit(_build_email_rate_limit_key(request, email))
