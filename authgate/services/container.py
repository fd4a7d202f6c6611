"""Process-wide wiring of the auth services.

One container per process (per app). Tests build their own from custom
settings so every test gets isolated stores and limiter state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from authgate.adapters.rate_limit.base import RateLimitConfig
from authgate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from authgate.adapters.storage.memory import InMemoryAuthStorage
from authgate.adapters.storage.sql import SqlAuthStorage, create_engine_from_url
from authgate.core.config import Settings
from authgate.services.auth_service import AuthService
from authgate.services.password_hasher import PasswordHasher
from authgate.services.persistence import PersistenceBackend
from authgate.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class AuthContainer:
    settings: Settings
    backend: PersistenceBackend
    sessions: SessionStore
    limiter: InMemoryFixedWindowRateLimiter
    auth: AuthService
    auth_rate_limit: RateLimitConfig

    @classmethod
    def from_settings(cls, cfg: Settings) -> "AuthContainer":
        engine = create_engine_from_url(
            cfg.db.url,
            pool_size=cfg.db.pool_size,
            max_overflow=cfg.db.max_overflow,
            echo=cfg.db.echo,
        )
        # No silent in-memory fallback in production: failures must surface.
        fallback = None if cfg.is_production else InMemoryAuthStorage()
        backend = PersistenceBackend(SqlAuthStorage(engine), fallback=fallback)

        sessions = SessionStore(backend, ttl=timedelta(seconds=cfg.auth.session_ttl_seconds))
        limiter = InMemoryFixedWindowRateLimiter(
            sweep_interval_seconds=cfg.rate_limit.sweep_interval_seconds,
        )
        auth = AuthService(
            backend=backend,
            hasher=PasswordHasher(iterations=cfg.auth.password_iterations),
            sessions=sessions,
            limiter=limiter,
        )

        logger.info(
            "container.built",
            extra={
                "app_env": cfg.app_env,
                "db_dialect": engine.dialect.name,
                "storage_fallback": fallback is not None,
            },
        )
        return cls(
            settings=cfg,
            backend=backend,
            sessions=sessions,
            limiter=limiter,
            auth=auth,
            auth_rate_limit=RateLimitConfig(
                limit=cfg.rate_limit.requests,
                window_seconds=cfg.rate_limit.window_seconds,
            ),
        )

    def start(self) -> None:
        self.limiter.start()

    async def aclose(self) -> None:
        self.limiter.stop()
        await self.backend.dispose()
