"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LevelPayload(BaseModel):
    """Request body for submitting a reading."""

    level: float = Field(..., strict=True, description="Measured level.")


class IngestResponse(BaseModel):
    """Response returned once a reading has been stored."""

    status: str = "success"
    message: str


class ErrorResponse(BaseModel):
    detail: str
