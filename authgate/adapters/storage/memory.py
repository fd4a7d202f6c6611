"""Process-local auth storage.

Mirrors the durable schema in dictionaries. Used outside production when the
durable store fails, and in tests. Contents vanish with the process.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

from authgate.adapters.storage.base import AbstractAuthStorage, SessionRecord, UserRecord
from authgate.core.errors import DuplicateEmailError


class InMemoryAuthStorage(AbstractAuthStorage):
    """Thread-safe in-memory users and sessions."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[str, UserRecord] = {}
        self._user_ids_by_email: dict[str, str] = {}
        self._sessions: dict[str, SessionRecord] = {}

    async def create_user(self, *, email: str, password_hash: str, name: str | None) -> UserRecord:
        with self._lock:
            if email in self._user_ids_by_email:
                raise DuplicateEmailError()
            record = UserRecord(
                id=uuid.uuid4().hex,
                email=email,
                name=name,
                password_hash=password_hash,
                created_at=datetime.now(timezone.utc),
            )
            self._users[record.id] = record
            self._user_ids_by_email[email] = record.id
            return record

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        with self._lock:
            user_id = self._user_ids_by_email.get(email)
            return self._users.get(user_id) if user_id else None

    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        with self._lock:
            return self._users.get(user_id)

    async def create_session(
        self,
        *,
        token_hash: str,
        user_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        record = SessionRecord(
            id=uuid.uuid4().hex,
            token_hash=token_hash,
            user_id=user_id,
            created_at=created_at,
            expires_at=expires_at,
        )
        with self._lock:
            if token_hash in self._sessions:
                raise ValueError("session token hash already exists")
            self._sessions[token_hash] = record
        return record

    async def find_session(self, token_hash: str, now: datetime) -> SessionRecord | None:
        with self._lock:
            record = self._sessions.get(token_hash)
        if record is None or record.expires_at <= now:
            return None
        return record

    async def delete_session(self, token_hash: str) -> bool:
        with self._lock:
            return self._sessions.pop(token_hash, None) is not None

    async def create_schema(self) -> None:
        return None

    async def ping(self) -> None:
        return None

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {"users": len(self._users), "sessions": len(self._sessions)}
