"""Session issuance, validation and revocation.

Raw tokens only ever travel back to the caller (for the cookie); storage and
logs see the SHA-256 of the token.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from authgate.adapters.storage.base import PublicUser
from authgate.services.persistence import PersistenceBackend

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
DEFAULT_SESSION_TTL = timedelta(days=7)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedSession:
    """A freshly created session; ``token`` goes into the cookie."""

    token: str = field(repr=False)
    user_id: str
    expires_at: datetime


class SessionStore:
    def __init__(
        self,
        backend: PersistenceBackend,
        *,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend = backend
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def create_session(self, user_id: str) -> IssuedSession:
        """Persist a new session for ``user_id`` and return its raw token.

        Storage policy (bootstrap-and-retry, fallback outside production,
        AuthStorageUnavailableError in production) comes from the backend.
        """
        token = secrets.token_hex(TOKEN_BYTES)
        created_at = self._clock()
        expires_at = created_at + self._ttl

        record = await self._backend.create_session(
            token_hash=hash_token(token),
            user_id=user_id,
            created_at=created_at,
            expires_at=expires_at,
        )
        logger.info(
            "session.created",
            extra={"session_id": record.id, "user_id": user_id, "expires_at": expires_at.isoformat()},
        )
        return IssuedSession(token=token, user_id=user_id, expires_at=expires_at)

    async def validate_session(self, raw_token: str | None) -> PublicUser | None:
        """Resolve a raw token to its user, or None.

        Never raises: a storage failure logs the caller out instead of
        breaking the page. Expiry is strict; a session is invalid at its
        ``expires_at`` instant.
        """
        if not raw_token:
            return None

        try:
            session = await self._backend.find_session(hash_token(raw_token), self._clock())
            if session is None:
                return None
            user = await self._backend.find_user_by_id(session.user_id)
        except Exception as exc:
            logger.warning(
                "session.validate_failed",
                extra={"error_type": type(exc).__name__, "storage_kind": getattr(exc, "kind", None)},
            )
            return None

        if user is None:
            logger.warning("session.orphaned", extra={"session_id": session.id})
            return None
        return user.to_public()

    async def destroy_session(self, raw_token: str | None) -> None:
        """Best-effort delete; idempotent and never raises."""
        if not raw_token:
            return

        try:
            deleted = await self._backend.delete_session(hash_token(raw_token))
        except Exception as exc:
            logger.warning(
                "session.destroy_failed",
                extra={"error_type": type(exc).__name__, "storage_kind": getattr(exc, "kind", None)},
            )
            return
        logger.info("session.destroyed", extra={"deleted": deleted})
