"""
EventLens Backend — Stall Route Handlers
=========================================

What:  Single-stall reads and admin writes, manual marker lookup, the view
       counter and engagement analytics.

Manual marker lookup (`/by-marker/{marker_id}`) is the non-AR fallback:
it reports plain 404s and performs none of the scan validation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventlens.database import get_db_session
from eventlens.schemas.catalog import StallAnalyticsResponse, StallResponse, StallUpdate
from eventlens.schemas.common import ErrorResponse
from eventlens.services.catalog_service import catalog_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stalls", tags=["Stalls"])

NOT_FOUND = {404: {"description": "Stall not found", "model": ErrorResponse}}


@router.get(
    "/by-marker/{marker_id}",
    response_model=StallResponse,
    responses=NOT_FOUND,
    summary="Find a stall by its marker id",
)
async def get_stall_by_marker(
    marker_id: str,
    event_id: Optional[str] = Query(default=None, description="Restrict to one event"),
    db: AsyncSession = Depends(get_db_session),
) -> StallResponse:
    return await catalog_service.get_stall_by_marker(db, marker_id, event_id=event_id)


@router.get("/{stall_id}", response_model=StallResponse, responses=NOT_FOUND, summary="Get a stall")
async def get_stall(stall_id: str, db: AsyncSession = Depends(get_db_session)) -> StallResponse:
    return await catalog_service.get_stall(db, stall_id)


@router.patch(
    "/{stall_id}",
    response_model=StallResponse,
    responses={
        **NOT_FOUND,
        409: {"description": "Marker id already used in this event", "model": ErrorResponse},
    },
    summary="Update a stall",
)
async def update_stall(
    stall_id: str,
    payload: StallUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> StallResponse:
    return await catalog_service.update_stall(db, stall_id, payload)


@router.delete(
    "/{stall_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=NOT_FOUND,
    summary="Delete a stall",
)
async def delete_stall(stall_id: str, db: AsyncSession = Depends(get_db_session)) -> Response:
    await catalog_service.delete_stall(db, stall_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{stall_id}/views",
    response_model=StallResponse,
    responses=NOT_FOUND,
    summary="Count one view of a stall",
)
async def record_view(stall_id: str, db: AsyncSession = Depends(get_db_session)) -> StallResponse:
    return await catalog_service.increment_view_count(db, stall_id)


@router.get(
    "/{stall_id}/analytics",
    response_model=StallAnalyticsResponse,
    responses=NOT_FOUND,
    summary="Scan, view and favourite counts for a stall",
)
async def stall_analytics(
    stall_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> StallAnalyticsResponse:
    return await catalog_service.get_stall_analytics(db, stall_id)
