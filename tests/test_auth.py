"""Unit tests for session cookie helpers and auth dependencies."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import FastAPI

from authgate.adapters.storage.base import PublicUser
from authgate.core.auth import (
    clear_session_cookie_kwargs,
    get_container,
    get_current_user,
    get_session_token,
    require_user,
    session_cookie_kwargs,
)
from authgate.core.errors import AuthenticationAppError

EXPIRES = datetime(2026, 1, 8, tzinfo=timezone.utc)


def _request(cookies: dict | None = None, **state) -> Mock:
    app = FastAPI()
    for key, value in state.items():
        setattr(app.state, key, value)
    request = Mock()
    request.app = app
    request.cookies = cookies or {}
    return request


class TestCookieKwargs:
    def test_session_cookie_attributes(self, settings_factory) -> None:
        kwargs = session_cookie_kwargs(settings_factory(), "abc123", EXPIRES)

        assert kwargs == {
            "key": "tg_session",
            "value": "abc123",
            "expires": EXPIRES,
            "httponly": True,
            "secure": False,
            "samesite": "lax",
            "path": "/",
        }

    def test_secure_in_production(self, settings_factory) -> None:
        cfg = settings_factory(app_env="production")

        assert session_cookie_kwargs(cfg, "abc123", EXPIRES)["secure"] is True
        assert clear_session_cookie_kwargs(cfg)["secure"] is True

    def test_clear_cookie_matches_name_and_path(self, settings_factory) -> None:
        kwargs = clear_session_cookie_kwargs(settings_factory())

        assert kwargs["key"] == "tg_session"
        assert kwargs["path"] == "/"


class TestDependencies:
    def test_get_container_requires_running_lifespan(self) -> None:
        with pytest.raises(RuntimeError):
            get_container(_request())

    def test_get_container_returns_app_container(self) -> None:
        container = Mock()
        assert get_container(_request(container=container)) is container

    def test_get_session_token_reads_configured_cookie(self, settings_factory) -> None:
        cfg = settings_factory()

        assert get_session_token(_request({"tg_session": "tok"}, settings=cfg)) == "tok"
        assert get_session_token(_request({"tg_session": ""}, settings=cfg)) is None
        assert get_session_token(_request({"other": "tok"}, settings=cfg)) is None

    @pytest.mark.asyncio
    async def test_get_current_user_delegates_to_service(self, settings_factory) -> None:
        user = PublicUser(id="u1", email="ada@example.com")
        container = Mock()
        container.auth.current_user = AsyncMock(return_value=user)

        result = await get_current_user(
            _request({"tg_session": "tok"}, settings=settings_factory()), container
        )

        assert result is user
        container.auth.current_user.assert_awaited_once_with("tok")

    @pytest.mark.asyncio
    async def test_require_user_rejects_anonymous(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            await require_user(None)

        assert exc_info.value.code == "not_authenticated"

    @pytest.mark.asyncio
    async def test_require_user_passes_user_through(self) -> None:
        user = PublicUser(id="u1", email="ada@example.com")
        assert await require_user(user) is user
