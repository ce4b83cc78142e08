"""Audit trail and statistics endpoints."""

from typing import Optional

from fastapi import APIRouter, Query

from medclaim.api.dependencies import RegistryDep
from medclaim.api.models.registry import EventsResponse
from medclaim.domain.enums import EventType
from medclaim.domain.models import RegistryStatistics

router = APIRouter(prefix="/api", tags=["events"])


@router.get("/events", response_model=EventsResponse)
def get_events(
    registry: RegistryDep,
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of events to return"),
    offset: int = Query(0, ge=0, description="Number of events to skip"),
    event_type: Optional[EventType] = Query(None, description="Filter by event type"),
) -> EventsResponse:
    """Registry events, newest first."""
    events = registry.get_events(limit=limit, offset=offset, event_type=event_type)
    return EventsResponse(events=events, limit=limit, offset=offset)


@router.get("/stats", response_model=RegistryStatistics)
def get_statistics(registry: RegistryDep) -> RegistryStatistics:
    return registry.statistics()
