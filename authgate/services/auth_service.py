"""Sign-up, sign-in, sign-out and current-user resolution.

This service is the surface other parts of the application consume. It
coordinates:
- Credential hashing/verification (off the event loop)
- User creation and lookup through the persistence policy
- Session issuance/validation/revocation
- Rate-limit decisions for gated actions

Login failures use one message for unknown email and wrong password. Unknown
emails still pay for a PBKDF2 verification so timing does not reveal which
branch was taken.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from authgate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitDecision,
)
from authgate.adapters.storage.base import PublicUser
from authgate.core.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    RateLimitExceededError,
)
from authgate.core.logging import hash_identifier
from authgate.services.password_hasher import PasswordHasher
from authgate.services.persistence import PersistenceBackend
from authgate.services.session_store import IssuedSession, SessionStore

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class AuthenticatedSession:
    user: PublicUser
    session: IssuedSession


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(
        self,
        *,
        backend: PersistenceBackend,
        hasher: PasswordHasher,
        sessions: SessionStore,
        limiter: AbstractRateLimiter,
    ) -> None:
        self._backend = backend
        self._hasher = hasher
        self._sessions = sessions
        self._limiter = limiter
        self._dummy_hash: str | None = None

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def sign_up(self, email: str, password: str, name: str | None = None) -> AuthenticatedSession:
        """Create an account and sign it in.

        Raises:
            DuplicateEmailError: If the email is already registered.
            AuthStorageUnavailableError: In production, when storage is down.
        """
        email = normalize_email(email)
        email_hash = hash_identifier(email)

        if await self._backend.find_user_by_email(email) is not None:
            logger.info("auth.signup_rejected", extra={"reason": "duplicate_email", "email_hash": email_hash})
            raise DuplicateEmailError()

        password_hash = await self._run_blocking(self._hasher.hash, password)
        user = await self._backend.create_user(email=email, password_hash=password_hash, name=name)
        session = await self._sessions.create_session(user.id)

        logger.info("auth.signup_succeeded", extra={"user_id": user.id, "email_hash": email_hash})
        return AuthenticatedSession(user=user.to_public(), session=session)

    async def sign_in(self, email: str, password: str) -> AuthenticatedSession:
        """Verify credentials and issue a session.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            AuthStorageUnavailableError: In production, when storage is down.
        """
        email = normalize_email(email)
        email_hash = hash_identifier(email)

        user = await self._backend.find_user_by_email(email)
        if user is None:
            await self._run_blocking(self._verify_against_dummy, password)
            logger.info("auth.signin_failed", extra={"reason": "unknown_email", "email_hash": email_hash})
            raise InvalidCredentialsError()

        if not await self._run_blocking(self._hasher.verify, password, user.password_hash):
            logger.info("auth.signin_failed", extra={"reason": "wrong_password", "email_hash": email_hash})
            raise InvalidCredentialsError()

        session = await self._sessions.create_session(user.id)
        logger.info("auth.signin_succeeded", extra={"user_id": user.id})
        return AuthenticatedSession(user=user.to_public(), session=session)

    async def sign_out(self, raw_token: str | None) -> None:
        await self._sessions.destroy_session(raw_token)

    async def current_user(self, raw_token: str | None) -> PublicUser | None:
        return await self._sessions.validate_session(raw_token)

    def rate_limit(self, identifier: str, config: RateLimitConfig) -> RateLimitDecision:
        return self._limiter.check(identifier, config)

    def enforce_rate_limit(self, identifier: str, config: RateLimitConfig) -> RateLimitDecision:
        """Like ``rate_limit`` but raises when the request is not allowed.

        Raises:
            RateLimitExceededError: Carrying the seconds until the window resets.
        """
        decision = self._limiter.check(identifier, config)
        if decision.allowed:
            return decision

        retry_after = decision.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": hash_identifier(identifier),
                "limit": decision.limit,
                "retry_after_s": retry_after,
            },
        )
        raise RateLimitExceededError(
            retry_after,
            limit=decision.limit,
            reset_at=decision.reset_at,
        )

    def reset_rate_limit(self, identifier: str) -> None:
        """Forget the budget spent under ``identifier``."""
        self._limiter.reset(identifier)
        logger.info("rate_limit.reset", extra={"key_hash": hash_identifier(identifier)})

    def _verify_against_dummy(self, password: str) -> bool:
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash(secrets.token_hex(16))
        return self._hasher.verify(password, self._dummy_hash)

    async def _run_blocking(self, func: Callable[..., R], *args: Any) -> R:
        # PBKDF2 is CPU-bound; keep it off the event loop.
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)
