"""OpenAPI customization.

Documents the session cookie as an ``apiKey`` security scheme and marks which
operations need it. Credential and health endpoints are public.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from authgate.core.config import Settings, settings

_PUBLIC_SUFFIXES = ("/health", "/status", "/auth/signup", "/auth/login", "/auth/logout")

_TAGS = [
    {"name": "Auth", "description": "Sign-up, sign-in, sign-out and the current user."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add the cookie scheme and tags."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()
        cfg: Settings = getattr(app.state, "settings", settings)

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "SessionCookie",
            {
                "type": "apiKey",
                "in": "cookie",
                "name": cfg.auth.cookie_name,
                "description": "Raw session token issued by sign-up or sign-in.",
            },
        )
        schema.setdefault("security", [{"SessionCookie": []}])

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing)

        for path, methods in schema.get("paths", {}).items():
            if path.endswith(_PUBLIC_SUFFIXES):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
