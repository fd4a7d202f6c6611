"""Pydantic schemas for health and status responses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: Literal["ok", "degraded"] = Field(..., description="Overall service status")
    database: Literal["healthy", "unhealthy"] = Field(
        ..., description="Result of a round-trip to the durable store"
    )
    storage_fallback: bool = Field(
        ..., description="Whether writes fall back to process memory when the database fails"
    )
    environment: str = Field(..., description="APP_ENV of this deployment")
