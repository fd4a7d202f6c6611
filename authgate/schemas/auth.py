"""Pydantic schemas for the auth endpoints.

Input is normalized here (trimmed, lower-cased email; blank name → None) so
the services receive clean values. Sign-up length limits depend on the running
app's AUTH_* settings, so they are checked by ``SignUpRequest.limit_errors``
rather than by field validators.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator

from authgate.adapters.storage.base import PublicUser
from authgate.core.config import AuthSettings

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _limit_error(field: str, message: str) -> dict[str, Any]:
    return {"type": "value_error", "loc": ("body", field), "msg": message}


def _normalize_email(value: str) -> str:
    email = value.strip().lower()
    if len(email) > 320 or not _EMAIL_PATTERN.match(email):
        raise ValueError("Enter a valid email address")
    return email


class SignInRequest(BaseModel):
    email: str = Field(..., description="Account email (case-insensitive)")
    password: str = Field(..., description="Account password")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class SignUpRequest(BaseModel):
    email: str = Field(..., description="Account email (case-insensitive)")
    password: str = Field(..., description="New password")
    name: str | None = Field(default=None, description="Optional display name")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        name = v.strip()
        if not name:
            return None
        return name

    def limit_errors(self, auth: AuthSettings) -> list[dict[str, Any]]:
        """Return validation errors for the configured length limits.

        The entries follow the shape FastAPI renders in a 422 body. The
        submitted value is left out so a password never echoes back.
        """
        errors: list[dict[str, Any]] = []
        if len(self.password) < auth.password_min_length:
            errors.append(
                _limit_error("password", f"Password must be at least {auth.password_min_length} characters")
            )
        elif len(self.password) > auth.password_max_length:
            errors.append(
                _limit_error("password", f"Password must be at most {auth.password_max_length} characters")
            )
        if self.name is not None and len(self.name) > auth.name_max_length:
            errors.append(_limit_error("name", f"Name must be at most {auth.name_max_length} characters"))
        return errors


class UserResponse(BaseModel):
    """Public user fields; never includes the password hash."""

    id: str
    email: str
    name: str | None = None

    @classmethod
    def from_user(cls, user: PublicUser) -> "UserResponse":
        return cls(id=user.id, email=user.email, name=user.name)
