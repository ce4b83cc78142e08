"""Health check models for the registry API."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from medclaim import __version__


class StorageHealth(BaseModel):
    """Storage health status model.

    Attributes:
        status: Connection status
        type: Storage backend (duckdb or memory)
        response_time_ms: Storage response time in milliseconds (optional)
    """
    status: Literal["connected", "disconnected"]
    type: str
    response_time_ms: float | None = Field(None, description="Storage response time in milliseconds")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: Literal["healthy", "unhealthy"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(default=__version__, description="Application version")
    storage: StorageHealth
