"""Durable auth storage on an async SQLAlchemy engine.

Failures are not translated here (except the unique-email violation, which is
a domain outcome). Classification and fallback policy live in
``authgate.services.persistence``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from sqlalchemy import delete, event, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from authgate.adapters.storage.base import AbstractAuthStorage, SessionRecord, UserRecord
from authgate.adapters.storage.models import Base, SessionModel, UserModel
from authgate.core.errors import DuplicateEmailError

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored here is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _user_record(row: UserModel) -> UserRecord:
    return UserRecord(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        created_at=_as_utc(row.created_at),
    )


def _session_record(row: SessionModel) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        token_hash=row.token_hash,
        user_id=row.user_id,
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
    )


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # SQLite ships with FK enforcement off; ON DELETE CASCADE depends on it.
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def create_engine_from_url(
    url: str,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
) -> AsyncEngine:
    """Create the async engine.

    SQLite skips pool sizing and gets foreign keys switched on per connection.
    """

    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    is_sqlite = url.startswith("sqlite")
    if not is_sqlite:
        kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600)
    engine = create_async_engine(url, **kwargs)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class SqlAuthStorage(AbstractAuthStorage):
    """Users and sessions in a relational database."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Provide a session that rolls back on any exception."""
        session = self._session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_user(self, *, email: str, password_hash: str, name: str | None) -> UserRecord:
        row = UserModel(email=email, password_hash=password_hash, name=name)
        async with self._session() as db:
            db.add(row)
            try:
                await db.commit()
            except IntegrityError as exc:
                # ids are random; the only realistic collision is the email.
                raise DuplicateEmailError() from exc
        return _user_record(row)

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        async with self._session() as db:
            row = await db.scalar(select(UserModel).where(UserModel.email == email))
        return _user_record(row) if row is not None else None

    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        async with self._session() as db:
            row = await db.get(UserModel, user_id)
        return _user_record(row) if row is not None else None

    async def create_session(
        self,
        *,
        token_hash: str,
        user_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        row = SessionModel(
            token_hash=token_hash,
            user_id=user_id,
            created_at=_as_utc(created_at),
            expires_at=_as_utc(expires_at),
        )
        async with self._session() as db:
            db.add(row)
            await db.commit()
        return _session_record(row)

    async def find_session(self, token_hash: str, now: datetime) -> SessionRecord | None:
        stmt = select(SessionModel).where(
            SessionModel.token_hash == token_hash,
            SessionModel.expires_at > _as_utc(now),
        )
        async with self._session() as db:
            row = await db.scalar(stmt)
        return _session_record(row) if row is not None else None

    async def delete_session(self, token_hash: str) -> bool:
        async with self._session() as db:
            result = await db.execute(
                delete(SessionModel).where(SessionModel.token_hash == token_hash)
            )
            await db.commit()
        return bool(result.rowcount)

    async def create_schema(self) -> None:
        # create_all checks for existing tables first, so reruns are no-ops.
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "storage.schema_ensured",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    async def ping(self) -> None:
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self._engine.dispose()
