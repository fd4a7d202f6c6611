"""Application factory for the FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) to improve testability: tests pass their own settings or a prebuilt
container and get an isolated app.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from authgate.api.routes import auth_router, health_router
from authgate.core.config import Settings, settings
from authgate.core.exception_handlers import setup_exception_handlers
from authgate.core.logging import configure_logging
from authgate.core.middleware import request_id_middleware
from authgate.core.openapi import apply_openapi_customizations
from authgate.services.container import AuthContainer

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    container_factory: Callable[[Settings], AuthContainer] = AuthContainer.from_settings,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to run with; defaults to the global settings.
        container_factory: Builds the service container when the app starts.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        container = container_factory(cfg)
        container.start()
        app.state.container = container
        logger.info("app.started", extra={"app_env": cfg.app_env})
        try:
            yield
        finally:
            await container.aclose()
            app.state.container = None
            logger.info("app.stopped")

    app = FastAPI(
        title="authgate",
        description=(
            "Identity and access-control service: password sign-up/sign-in, "
            "cookie-carried sessions, and fixed-window rate limiting."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = cfg

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(auth_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
