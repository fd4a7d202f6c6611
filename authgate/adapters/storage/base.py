"""Auth storage interface and the records it trades in.

Two implementations exist: a durable SQL store and a process-local in-memory
mirror used as a fallback outside production. Services receive them by
injection and never inspect which one they hold.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class PublicUser:
    """The only user shape handed to callers of read paths."""

    id: str
    email: str
    name: str | None = None


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str
    name: str | None
    password_hash: str = field(repr=False)
    created_at: datetime

    def to_public(self) -> PublicUser:
        return PublicUser(id=self.id, email=self.email, name=self.name)


@dataclass(frozen=True)
class SessionRecord:
    id: str
    token_hash: str = field(repr=False)
    user_id: str
    created_at: datetime
    expires_at: datetime


class AbstractAuthStorage(ABC):
    """Persistence operations for users and sessions."""

    @abstractmethod
    async def create_user(self, *, email: str, password_hash: str, name: str | None) -> UserRecord:
        """Insert a user.

        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        raise NotImplementedError

    @abstractmethod
    async def find_user_by_email(self, email: str) -> UserRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def create_session(
        self,
        *,
        token_hash: str,
        user_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        raise NotImplementedError

    @abstractmethod
    async def find_session(self, token_hash: str, now: datetime) -> SessionRecord | None:
        """Return the session for ``token_hash`` if it expires strictly after ``now``."""
        raise NotImplementedError

    @abstractmethod
    async def delete_session(self, token_hash: str) -> bool:
        """Delete by token hash; returns whether a row was removed."""
        raise NotImplementedError

    @abstractmethod
    async def create_schema(self) -> None:
        """Create missing tables and constraints. Must be idempotent."""
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> None:
        """Round-trip to the store; raises when it cannot be reached."""
        raise NotImplementedError

    async def dispose(self) -> None:
        """Release pooled resources."""
        return None
