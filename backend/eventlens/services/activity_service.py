"""
EventLens Backend — User Activity Service
==========================================

What:  Records user activity (views, favourites, manual scans) and reads a
       user's history back.
Who:   Activity routes. Scan and AR-session records do not pass through
       here; they go through the analytics sink straight to the record store.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventlens.models import UserActivity
from eventlens.schemas.activity import (
    ActivityListResponse,
    ActivityRecord,
    ActivityResponse,
    FavoritesResponse,
)
from eventlens.services.catalog_service import FAVORITE_TYPE, translate_db_errors

logger = logging.getLogger(__name__)


class ActivityService:

    @translate_db_errors("record the activity")
    async def log_activity(self, db: AsyncSession, record: ActivityRecord) -> ActivityResponse:
        row = UserActivity(**record.model_dump(exclude_none=True))
        db.add(row)
        await db.flush()
        logger.debug("Activity logged: %s user=%s stall=%s", row.activity_type, row.user_id, row.stall_id)
        return ActivityResponse.model_validate(row)

    @translate_db_errors("load user activity")
    async def list_user_activity(
        self,
        db: AsyncSession,
        user_id: str,
        activity_type: Optional[str] = None,
        limit: int = 50,
    ) -> ActivityListResponse:
        """Newest first; uses idx_user_activity_user_ts."""
        query = select(UserActivity).where(UserActivity.user_id == user_id)
        if activity_type:
            query = query.where(UserActivity.activity_type == activity_type)
        query = query.order_by(UserActivity.timestamp.desc()).limit(limit)

        result = await db.execute(query)
        activities = [ActivityResponse.model_validate(a) for a in result.scalars().all()]
        return ActivityListResponse(activities=activities, count=len(activities))

    @translate_db_errors("load favourite stalls")
    async def get_favorite_stalls(self, db: AsyncSession, user_id: str) -> FavoritesResponse:
        """Distinct stall ids the user favourited, most recent first."""
        result = await db.execute(
            select(UserActivity.stall_id)
            .where(
                UserActivity.user_id == user_id,
                UserActivity.activity_type == FAVORITE_TYPE,
                UserActivity.stall_id.is_not(None),
            )
            .order_by(UserActivity.timestamp.desc())
        )
        stall_ids: List[str] = []
        for stall_id in result.scalars().all():
            if stall_id not in stall_ids:
                stall_ids.append(stall_id)
        return FavoritesResponse(user_id=user_id, stall_ids=stall_ids)


activity_service = ActivityService()
