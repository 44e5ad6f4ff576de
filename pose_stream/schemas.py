"""Pydantic models for the collector API."""
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


class PoseEntry(BaseModel):
    """A stored frame. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Store-assigned id, increasing in arrival order")
    landmarks: List[Any] = Field(..., description="Landmarks exactly as received")
    timestamp: str = Field(..., description="Client capture time (ISO-8601)")
    sessionId: str = Field(..., description="Client session identifier")
    receivedAt: str = Field(..., description="Server receive time (ISO-8601)")


class IngestResponse(BaseModel):
    """Response from POST /api/pose-landmarks."""

    success: bool = True
    message: str
    id: int


class ErrorResponse(BaseModel):
    error: str
    message: str


class PoseDataResponse(BaseModel):
    """Response from GET /api/pose-data."""

    total: int
    data: List[PoseEntry]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    storedEntries: int
