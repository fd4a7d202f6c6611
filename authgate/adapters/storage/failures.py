"""Classification of durable-store failures.

Drivers disagree on how they report the same condition, so classification
looks at the SQLAlchemy wrapper type, the driver's SQLSTATE when it has one,
and finally the message text.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from sqlalchemy.exc import DBAPIError, InterfaceError, NoSuchTableError, OperationalError


class StorageFailureKind(str, Enum):
    MISSING_SCHEMA = "missing_schema"
    UNREACHABLE = "unreachable"
    AUTH_REJECTED = "auth_rejected"
    UNKNOWN = "unknown"

    @property
    def hint(self) -> str:
        return _HINTS[self]


_HINTS = {
    StorageFailureKind.MISSING_SCHEMA: "auth tables are missing; schema bootstrap will run",
    StorageFailureKind.UNREACHABLE: "database unreachable; check DB_URL host/port and network",
    StorageFailureKind.AUTH_REJECTED: "database rejected the credentials in DB_URL",
    StorageFailureKind.UNKNOWN: "unclassified storage failure",
}

_MISSING_SCHEMA_SQLSTATES = {"42P01"}  # undefined_table
_AUTH_SQLSTATES = {"28000", "28P01"}  # invalid_authorization_specification, invalid_password

_MISSING_SCHEMA_MARKERS = (
    "no such table",
    "undefinedtable",
    "doesn't exist",
)
_AUTH_MARKERS = (
    "password authentication failed",
    "authentication failed",
    "access denied",
    "invalidpassword",
)
_UNREACHABLE_MARKERS = (
    "connection refused",
    "could not connect",
    "could not translate host name",
    "name or service not known",
    "connection reset",
    "server closed the connection",
    "unable to open database file",
    "timeout",
    "timed out",
)


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None)
    for source in (orig, exc):
        if source is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            code = getattr(source, attr, None)
            if isinstance(code, str) and code:
                return code
    return None


def _message(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    parts = [type(exc).__name__, str(exc)]
    if orig is not None:
        parts.extend([type(orig).__name__, str(orig)])
    return " ".join(parts).lower()


def classify_failure(exc: BaseException) -> StorageFailureKind:
    """Map an exception raised by a storage call to a failure kind."""

    if isinstance(exc, NoSuchTableError):
        return StorageFailureKind.MISSING_SCHEMA

    code = _sqlstate(exc)
    if code in _MISSING_SCHEMA_SQLSTATES:
        return StorageFailureKind.MISSING_SCHEMA
    if code in _AUTH_SQLSTATES:
        return StorageFailureKind.AUTH_REJECTED
    if code is not None and code.startswith("08"):
        return StorageFailureKind.UNREACHABLE

    message = _message(exc)
    if any(marker in message for marker in _MISSING_SCHEMA_MARKERS):
        return StorageFailureKind.MISSING_SCHEMA
    if "relation" in message and "does not exist" in message:
        return StorageFailureKind.MISSING_SCHEMA
    if any(marker in message for marker in _AUTH_MARKERS):
        return StorageFailureKind.AUTH_REJECTED

    if isinstance(exc, (OSError, asyncio.TimeoutError, InterfaceError)):
        return StorageFailureKind.UNREACHABLE
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StorageFailureKind.UNREACHABLE
    if isinstance(exc, (OperationalError, DBAPIError)) and any(
        marker in message for marker in _UNREACHABLE_MARKERS
    ):
        return StorageFailureKind.UNREACHABLE

    return StorageFailureKind.UNKNOWN
