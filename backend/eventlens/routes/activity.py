"""
EventLens Backend — User Activity Routes
=========================================

What:  Record a user action (view, favourite, manual scan) and read a
       user's history and favourites.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventlens.database import get_db_session
from eventlens.schemas.activity import (
    ActivityListResponse,
    ActivityRecord,
    ActivityResponse,
    FavoritesResponse,
)
from eventlens.services.activity_service import activity_service

router = APIRouter(prefix="/api", tags=["Activity"])


@router.post(
    "/activity",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a user activity",
)
async def log_activity(
    payload: ActivityRecord,
    db: AsyncSession = Depends(get_db_session),
) -> ActivityResponse:
    return await activity_service.log_activity(db, payload)


@router.get(
    "/users/{user_id}/activity",
    response_model=ActivityListResponse,
    summary="A user's activity, newest first",
)
async def list_user_activity(
    user_id: str,
    activity_type: Optional[str] = Query(default=None, max_length=50),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db_session),
) -> ActivityListResponse:
    return await activity_service.list_user_activity(
        db, user_id, activity_type=activity_type, limit=limit
    )


@router.get(
    "/users/{user_id}/favorites",
    response_model=FavoritesResponse,
    summary="Stall ids a user has favourited",
)
async def list_favorites(user_id: str, db: AsyncSession = Depends(get_db_session)) -> FavoritesResponse:
    return await activity_service.get_favorite_stalls(db, user_id)
