"""
EventLens Backend — Event Route Handlers
=========================================

What:  Browse, search and administer events, and the stalls that belong to
       one event.
Who:   Event list/detail screens and the admin console.

Routes are thin: parse the request, call CatalogService, return the model.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventlens.database import get_db_session
from eventlens.schemas.catalog import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventStatus,
    EventUpdate,
    StallCreate,
    StallListResponse,
    StallResponse,
)
from eventlens.schemas.common import ErrorResponse
from eventlens.services.catalog_service import catalog_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["Events"])

NOT_FOUND = {404: {"description": "Event not found", "model": ErrorResponse}}


@router.get(
    "",
    response_model=EventListResponse,
    summary="List events, newest start first",
)
async def list_events(
    status_filter: Optional[EventStatus] = Query(default=None, alias="status"),
    include_cancelled: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db_session),
) -> EventListResponse:
    """Cancelled events are hidden unless asked for (or filtered on explicitly)."""
    return await catalog_service.list_events(
        db, status=status_filter, include_cancelled=include_cancelled, limit=limit
    )


@router.get(
    "/search",
    response_model=EventListResponse,
    summary="Search events by name or category",
)
async def search_events(
    q: str = Query(min_length=1, max_length=100),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db_session),
) -> EventListResponse:
    return await catalog_service.search_events(db, q, limit=limit)


@router.post(
    "",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an event",
)
async def create_event(
    payload: EventCreate,
    db: AsyncSession = Depends(get_db_session),
) -> EventResponse:
    return await catalog_service.create_event(db, payload)


@router.get("/{event_id}", response_model=EventResponse, responses=NOT_FOUND, summary="Get an event")
async def get_event(event_id: str, db: AsyncSession = Depends(get_db_session)) -> EventResponse:
    return await catalog_service.get_event(db, event_id)


@router.patch(
    "/{event_id}",
    response_model=EventResponse,
    responses=NOT_FOUND,
    summary="Update an event",
)
async def update_event(
    event_id: str,
    payload: EventUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> EventResponse:
    return await catalog_service.update_event(db, event_id, payload)


@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=NOT_FOUND,
    summary="Delete an event and its stalls",
)
async def delete_event(event_id: str, db: AsyncSession = Depends(get_db_session)) -> Response:
    await catalog_service.delete_event(db, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Stalls of an event ────────────────────────────────────────────────────


@router.get(
    "/{event_id}/stalls",
    response_model=StallListResponse,
    responses=NOT_FOUND,
    summary="List the stalls of an event by name",
)
async def list_stalls(
    event_id: str,
    include_deleted: bool = Query(default=False),
    db: AsyncSession = Depends(get_db_session),
) -> StallListResponse:
    return await catalog_service.list_stalls(db, event_id, include_deleted=include_deleted)


@router.get(
    "/{event_id}/stalls/search",
    response_model=StallListResponse,
    summary="Search an event's stalls by name or category",
)
async def search_stalls(
    event_id: str,
    q: str = Query(min_length=1, max_length=100),
    db: AsyncSession = Depends(get_db_session),
) -> StallListResponse:
    return await catalog_service.search_stalls(db, event_id, q)


@router.post(
    "/{event_id}/stalls",
    response_model=StallResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **NOT_FOUND,
        409: {"description": "Marker id already used in this event", "model": ErrorResponse},
    },
    summary="Register a stall under an event",
)
async def create_stall(
    event_id: str,
    payload: StallCreate,
    db: AsyncSession = Depends(get_db_session),
) -> StallResponse:
    return await catalog_service.create_stall(db, event_id, payload)
