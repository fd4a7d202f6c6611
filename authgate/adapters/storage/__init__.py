"""Auth storage adapters: durable SQL store, in-memory mirror, bootstrap."""

from authgate.adapters.storage.base import (
    AbstractAuthStorage,
    PublicUser,
    SessionRecord,
    UserRecord,
)
from authgate.adapters.storage.bootstrap import SchemaBootstrapCancelled, SchemaBootstrapper
from authgate.adapters.storage.failures import StorageFailureKind, classify_failure
from authgate.adapters.storage.memory import InMemoryAuthStorage
from authgate.adapters.storage.sql import SqlAuthStorage, create_engine_from_url

__all__ = [
    "AbstractAuthStorage",
    "InMemoryAuthStorage",
    "PublicUser",
    "SchemaBootstrapCancelled",
    "SchemaBootstrapper",
    "SessionRecord",
    "SqlAuthStorage",
    "StorageFailureKind",
    "UserRecord",
    "classify_failure",
    "create_engine_from_url",
]
