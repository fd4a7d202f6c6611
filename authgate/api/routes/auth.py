from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.exceptions import RequestValidationError

from authgate.adapters.storage.base import PublicUser
from authgate.core.auth import (
    clear_session_cookie_kwargs,
    get_container,
    get_session_token,
    require_user,
    session_cookie_kwargs,
)
from authgate.core.rate_limit import (
    enforce_auth_rate_limit,
    enforce_email_rate_limit,
    reset_email_rate_limit,
)
from authgate.schemas.auth import SignInRequest, SignUpRequest, UserResponse
from authgate.services.auth_service import AuthenticatedSession
from authgate.services.container import AuthContainer

router = APIRouter(prefix="/auth", tags=["Auth"])

Container = Annotated[AuthContainer, Depends(get_container)]


def _set_session_cookie(response: Response, container: AuthContainer, result: AuthenticatedSession) -> None:
    response.set_cookie(
        **session_cookie_kwargs(
            container.settings,
            result.session.token,
            result.session.expires_at,
        )
    )


@router.post(
    "/signup",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
async def sign_up(payload: SignUpRequest, response: Response, container: Container) -> UserResponse:
    """Create an account and start a session.

    Raises:
        RequestValidationError: 422 when the password or name breaks the
            configured AUTH_* length limits.
        DuplicateEmailError: 409 when the email is taken.
        RateLimitExceededError: 429 when the caller is throttled.
    """
    errors = payload.limit_errors(container.settings.auth)
    if errors:
        raise RequestValidationError(errors)
    result = await container.auth.sign_up(payload.email, payload.password, payload.name)
    _set_session_cookie(response, container, result)
    return UserResponse.from_user(result.user)


@router.post(
    "/login",
    response_model=UserResponse,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
async def sign_in(
    payload: SignInRequest,
    request: Request,
    response: Response,
    container: Container,
) -> UserResponse:
    """Verify credentials and start a session.

    Raises:
        InvalidCredentialsError: 401 with a message that does not reveal
            whether the email exists.
        RateLimitExceededError: 429 when the caller or the target email is
            throttled.
    """
    enforce_email_rate_limit(request, container, payload.email)
    result = await container.auth.sign_in(payload.email, payload.password)
    reset_email_rate_limit(request, container, payload.email)
    _set_session_cookie(response, container, result)
    return UserResponse.from_user(result.user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(request: Request, container: Container) -> Response:
    """End the current session. Always clears the cookie."""
    await container.auth.sign_out(get_session_token(request))
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(**clear_session_cookie_kwargs(container.settings))
    return response


@router.get("/me", response_model=UserResponse)
async def current_user(user: Annotated[PublicUser, Depends(require_user)]) -> UserResponse:
    return UserResponse.from_user(user)
