"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    """Generic acknowledgement returned by mutating endpoints."""

    status: str = Field(..., description="Short machine-readable outcome")
    message: str | None = Field(None, description="Optional human-readable detail")
