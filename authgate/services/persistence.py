"""Persistence policy over the durable and fallback auth stores.

Every operation goes to the durable store first. A failure is classified:

- missing schema: run the shared bootstrap, retry the operation once;
- unreachable / credentials rejected: logged with an operator hint, no retry;
- anything else: unclassified.

After that, a configured fallback store (non-production only) serves the
operation; without one the failure surfaces as AuthStorageUnavailableError.
Domain errors raised by a store (DuplicateEmailError) pass through untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, NoReturn, TypeVar

from authgate.adapters.storage.base import AbstractAuthStorage, SessionRecord, UserRecord
from authgate.adapters.storage.bootstrap import SchemaBootstrapper
from authgate.adapters.storage.failures import StorageFailureKind, classify_failure
from authgate.core.errors import AppError, AuthStorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")
StorageCall = Callable[[AbstractAuthStorage], Awaitable[T]]


class _DurableStoreFailure(Exception):
    def __init__(self, kind: StorageFailureKind, cause: BaseException) -> None:
        super().__init__(kind.value)
        self.kind = kind
        self.cause = cause


class PersistenceBackend:
    def __init__(
        self,
        durable: AbstractAuthStorage,
        *,
        fallback: AbstractAuthStorage | None = None,
        bootstrapper: SchemaBootstrapper | None = None,
    ) -> None:
        self._durable = durable
        self._fallback = fallback
        self._bootstrapper = bootstrapper or SchemaBootstrapper(durable.create_schema)

    @property
    def fallback_enabled(self) -> bool:
        return self._fallback is not None

    @property
    def bootstrapper(self) -> SchemaBootstrapper:
        return self._bootstrapper

    async def create_user(self, *, email: str, password_hash: str, name: str | None) -> UserRecord:
        return await self._write(
            "create_user",
            lambda store: store.create_user(email=email, password_hash=password_hash, name=name),
        )

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        return await self._read("find_user_by_email", lambda store: store.find_user_by_email(email))

    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        return await self._read("find_user_by_id", lambda store: store.find_user_by_id(user_id))

    async def create_session(
        self,
        *,
        token_hash: str,
        user_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> SessionRecord:
        return await self._write(
            "create_session",
            lambda store: store.create_session(
                token_hash=token_hash,
                user_id=user_id,
                created_at=created_at,
                expires_at=expires_at,
            ),
        )

    async def find_session(self, token_hash: str, now: datetime) -> SessionRecord | None:
        return await self._read("find_session", lambda store: store.find_session(token_hash, now))

    async def delete_session(self, token_hash: str) -> bool:
        """Delete from every configured store."""
        deleted = False
        try:
            deleted = await self._attempt_durable(
                "delete_session", lambda store: store.delete_session(token_hash)
            )
        except _DurableStoreFailure as failure:
            if self._fallback is None:
                self._raise_unavailable("delete_session", failure)
            self._log_fallback("delete_session", failure)
        if self._fallback is not None:
            deleted = await self._fallback.delete_session(token_hash) or deleted
        return deleted

    async def ping(self) -> bool:
        """Durable store health, for status reporting. Never raises."""
        try:
            await self._durable.ping()
        except Exception as exc:
            kind = classify_failure(exc)
            logger.warning(
                "storage.ping_failed",
                extra={"storage_kind": kind.value, "hint": kind.hint, "error_type": type(exc).__name__},
            )
            return False
        return True

    async def dispose(self) -> None:
        await self._durable.dispose()

    async def _write(self, operation: str, call: StorageCall[T]) -> T:
        try:
            return await self._attempt_durable(operation, call)
        except _DurableStoreFailure as failure:
            return await self._degrade(operation, call, failure)

    async def _read(self, operation: str, call: StorageCall[T | None]) -> T | None:
        try:
            result = await self._attempt_durable(operation, call)
        except _DurableStoreFailure as failure:
            return await self._degrade(operation, call, failure)
        if result is None and self._fallback is not None:
            # Rows written while the durable store was down live only here.
            return await call(self._fallback)
        return result

    async def _attempt_durable(self, operation: str, call: StorageCall[T]) -> T:
        try:
            return await call(self._durable)
        except AppError:
            raise
        except Exception as exc:
            kind = classify_failure(exc)
            if kind is not StorageFailureKind.MISSING_SCHEMA:
                raise _DurableStoreFailure(kind, exc) from exc

        logger.warning("storage.schema_missing", extra={"operation": operation})
        try:
            await self._bootstrapper.ensure()
        except Exception as exc:
            raise _DurableStoreFailure(StorageFailureKind.MISSING_SCHEMA, exc) from exc

        # Exactly one retry after bootstrap.
        try:
            return await call(self._durable)
        except AppError:
            raise
        except Exception as exc:
            raise _DurableStoreFailure(classify_failure(exc), exc) from exc

    async def _degrade(self, operation: str, call: StorageCall[T], failure: _DurableStoreFailure) -> T:
        if self._fallback is None:
            self._raise_unavailable(operation, failure)
        self._log_fallback(operation, failure)
        return await call(self._fallback)

    def _log_fallback(self, operation: str, failure: _DurableStoreFailure) -> None:
        logger.warning(
            "storage.fallback",
            extra={
                "operation": operation,
                "storage_kind": failure.kind.value,
                "hint": failure.kind.hint,
                "error_type": type(failure.cause).__name__,
            },
        )

    def _raise_unavailable(self, operation: str, failure: _DurableStoreFailure) -> NoReturn:
        logger.error(
            "storage.unavailable",
            extra={
                "operation": operation,
                "storage_kind": failure.kind.value,
                "hint": failure.kind.hint,
                "error_type": type(failure.cause).__name__,
            },
        )
        raise AuthStorageUnavailableError(kind=failure.kind.value, operation=operation) from failure.cause
