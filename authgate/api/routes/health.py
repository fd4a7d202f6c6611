from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from authgate.core.auth import get_container
from authgate.schemas.health import StatusResponse
from authgate.services.container import AuthContainer

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers; touches no dependencies."""

    return {"status": "ok"}


@router.get("/status", response_model=StatusResponse)
async def status_check(container: Annotated[AuthContainer, Depends(get_container)]) -> StatusResponse:
    """Readiness view including a database round-trip.

    Always answers 200; an unreachable database shows up as ``degraded``.
    """

    database_ok = await container.backend.ping()
    return StatusResponse(
        status="ok" if database_ok else "degraded",
        database="healthy" if database_ok else "unhealthy",
        storage_fallback=container.backend.fallback_enabled,
        environment=container.settings.app_env,
    )
