"""Tests for the durable/fallback persistence policy."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from authgate.adapters.storage.base import AbstractAuthStorage
from authgate.adapters.storage.memory import InMemoryAuthStorage
from authgate.core.errors import AuthStorageUnavailableError, DuplicateEmailError
from authgate.services.persistence import PersistenceBackend

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


class _DownStorage(AbstractAuthStorage):
    """Every call fails the way an unreachable database does."""

    def __init__(self) -> None:
        self.calls = 0
        self.schema_calls = 0

    def _fail(self):
        self.calls += 1
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def create_user(self, *, email, password_hash, name):
        self._fail()

    async def find_user_by_email(self, email):
        self._fail()

    async def find_user_by_id(self, user_id):
        self._fail()

    async def create_session(self, *, token_hash, user_id, created_at, expires_at):
        self._fail()

    async def find_session(self, token_hash, now):
        self._fail()

    async def delete_session(self, token_hash):
        self._fail()

    async def create_schema(self):
        self.schema_calls += 1

    async def ping(self):
        self._fail()


class _SchemaLessStorage(InMemoryAuthStorage):
    """Behaves like a database whose tables were never created."""

    def __init__(self, *, heals: bool = True) -> None:
        super().__init__()
        self._heals = heals
        self.ready = False
        self.schema_calls = 0
        self.create_user_calls = 0

    async def create_schema(self):
        self.schema_calls += 1
        self.ready = self._heals

    async def create_user(self, *, email, password_hash, name):
        self.create_user_calls += 1
        if not self.ready:
            raise OperationalError("INSERT", {}, Exception("no such table: users"))
        return await super().create_user(email=email, password_hash=password_hash, name=name)


class _DuplicateStorage(_DownStorage):
    async def create_user(self, *, email, password_hash, name):
        raise DuplicateEmailError()


@pytest.mark.asyncio
async def test_missing_schema_bootstraps_and_retries_once() -> None:
    durable = _SchemaLessStorage()
    backend = PersistenceBackend(durable)

    user = await backend.create_user(email="a@example.com", password_hash="h", name=None)

    assert user.email == "a@example.com"
    assert durable.schema_calls == 1
    assert durable.create_user_calls == 2


@pytest.mark.asyncio
async def test_retry_after_bootstrap_happens_only_once() -> None:
    durable = _SchemaLessStorage(heals=False)
    fallback = InMemoryAuthStorage()
    backend = PersistenceBackend(durable, fallback=fallback)

    user = await backend.create_user(email="a@example.com", password_hash="h", name=None)

    assert durable.create_user_calls == 2
    assert await fallback.find_user_by_id(user.id) is not None


@pytest.mark.asyncio
async def test_unreachable_store_falls_back_without_bootstrap() -> None:
    durable = _DownStorage()
    fallback = InMemoryAuthStorage()
    backend = PersistenceBackend(durable, fallback=fallback)

    user = await backend.create_user(email="a@example.com", password_hash="h", name="A")
    found = await backend.find_user_by_email("a@example.com")

    assert found is not None and found.id == user.id
    assert durable.schema_calls == 0
    assert fallback.counts()["users"] == 1


@pytest.mark.asyncio
async def test_without_fallback_failure_surfaces_as_unavailable() -> None:
    backend = PersistenceBackend(_DownStorage())

    with pytest.raises(AuthStorageUnavailableError) as exc_info:
        await backend.create_user(email="a@example.com", password_hash="h", name=None)

    assert exc_info.value.kind == "unreachable"
    assert exc_info.value.operation == "create_user"
    assert exc_info.value.code == "auth_storage_unavailable"
    assert "connection refused" not in exc_info.value.message


@pytest.mark.asyncio
async def test_reads_also_surface_unavailable_without_fallback() -> None:
    backend = PersistenceBackend(_DownStorage())

    with pytest.raises(AuthStorageUnavailableError):
        await backend.find_session("abc", NOW)


@pytest.mark.asyncio
async def test_duplicate_email_passes_through_untouched() -> None:
    fallback = InMemoryAuthStorage()
    backend = PersistenceBackend(_DuplicateStorage(), fallback=fallback)

    with pytest.raises(DuplicateEmailError):
        await backend.create_user(email="a@example.com", password_hash="h", name=None)

    assert fallback.counts()["users"] == 0


@pytest.mark.asyncio
async def test_reads_consult_fallback_when_durable_has_no_row() -> None:
    durable = InMemoryAuthStorage()
    fallback = InMemoryAuthStorage()
    backend = PersistenceBackend(durable, fallback=fallback)
    stray = await fallback.create_user(email="b@example.com", password_hash="h", name=None)

    found = await backend.find_user_by_id(stray.id)

    assert found is not None and found.email == "b@example.com"


@pytest.mark.asyncio
async def test_delete_session_clears_every_store() -> None:
    durable = InMemoryAuthStorage()
    fallback = InMemoryAuthStorage()
    backend = PersistenceBackend(durable, fallback=fallback)
    for store in (durable, fallback):
        await store.create_session(
            token_hash="t", user_id="u", created_at=NOW, expires_at=NOW + timedelta(hours=1)
        )

    assert await backend.delete_session("t") is True
    assert durable.counts()["sessions"] == 0
    assert fallback.counts()["sessions"] == 0
    assert await backend.delete_session("t") is False


@pytest.mark.asyncio
async def test_ping_reports_health_without_raising() -> None:
    assert await PersistenceBackend(InMemoryAuthStorage()).ping() is True
    assert await PersistenceBackend(_DownStorage()).ping() is False
