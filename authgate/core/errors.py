"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    http_status: int
    retry_after: int
    storage_kind: str
    operation: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when a request lacks a valid session."""


class DuplicateEmailError(AppError):
    """Raised on sign-up with an email that already has an account."""

    def __init__(self, message: str = "An account with this email already exists") -> None:
        super().__init__(code="duplicate_email", message=message)


class InvalidCredentialsError(AuthenticationAppError):
    """Raised when sign-in fails.

    Unknown email and wrong password share one message so responses cannot be
    used to enumerate accounts.
    """

    def __init__(self) -> None:
        super().__init__(code="invalid_credentials", message="Invalid email or password.")


class AuthStorageUnavailableError(AppError):
    """Raised when the durable auth store cannot serve a write.

    ``kind`` carries the operator-facing classification (missing_schema,
    unreachable, auth_rejected, unknown). The message stays generic because it
    may reach clients.
    """

    def __init__(self, kind: str, operation: str) -> None:
        super().__init__(
            code="auth_storage_unavailable",
            message="Authentication storage is temporarily unavailable. Please try again later.",
            details={"storage_kind": kind, "operation": operation},
        )
        self.kind = kind
        self.operation = operation


class RateLimitExceededError(AppError):
    """Raised when an identifier exhausted its window budget."""

    def __init__(
        self,
        retry_after_seconds: int,
        *,
        limit: int | None = None,
        reset_at: float | None = None,
    ) -> None:
        super().__init__(
            code="rate_limit_exceeded",
            message=f"Rate limit exceeded. Please try again in {retry_after_seconds} seconds.",
            details={"retry_after": retry_after_seconds},
        )
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
        self.reset_at = reset_at
