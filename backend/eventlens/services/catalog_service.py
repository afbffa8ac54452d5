"""
EventLens Backend — Catalog Service (Events & Stalls)
======================================================

What:  Business logic for browsing and administering events and stalls.
How:   Stateless; every method receives the request's AsyncSession
       (committed or rolled back by `get_db_session`).
Who:   Called by the events and stalls route handlers.

Error Handling Strategy:
    Missing rows become NotFoundError (404), uniqueness clashes
    ConflictError (409), rule violations ValidationError (400). Any other
    SQLAlchemy failure is logged and wrapped in DatabaseError (500) so
    driver details never reach the client.

Marker ids:
    Unique within an event, not globally. The same printed marker may be
    reused by another event; the record store prefers the stall of the
    event being scanned.
"""

import functools
import logging
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventlens.exceptions import (
    ConflictError,
    DatabaseError,
    EventLensError,
    NotFoundError,
    ValidationError,
)
from eventlens.models import Event, Stall, UserActivity
from eventlens.models.event import utcnow
from eventlens.schemas.activity import SCAN_ACTIVITY
from eventlens.schemas.catalog import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
    StallAnalyticsResponse,
    StallCreate,
    StallListResponse,
    StallResponse,
    StallUpdate,
)
from eventlens.schemas.scan import as_utc, normalize_marker_id

logger = logging.getLogger(__name__)

# Activity types counted by stall analytics. Scans come from both the AR
# flow (ar_marker_scan) and manual marker entry (scan).
SCAN_TYPES = ("scan", SCAN_ACTIVITY)
VIEW_TYPE = "view"
FAVORITE_TYPE = "favorite"


def translate_db_errors(operation: str):
    """
    Wraps a service coroutine: our own exceptions pass through untouched,
    SQLAlchemy errors become DatabaseError with the operation name logged.
    """

    def decorator(func_):
        @functools.wraps(func_)
        async def wrapper(*args, **kwargs):
            try:
                return await func_(*args, **kwargs)
            except EventLensError:
                raise
            except SQLAlchemyError as e:
                logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
                raise DatabaseError(
                    message=f"Could not {operation}. Please try again.",
                    context={"operation": operation, "error_type": type(e).__name__},
                ) from e

        return wrapper

    return decorator


class CatalogService:
    """
    Responsibilities:
        - Events: list, search, get, create, update, delete
        - Stalls: list by event, search, get, get by marker, create, update,
          delete, view counter, engagement analytics
    """

    # ── Events ────────────────────────────────────────────────────────────

    @translate_db_errors("list events")
    async def list_events(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        include_cancelled: bool = False,
        limit: int = 50,
    ) -> EventListResponse:
        """
        Browse events, newest start first.

        Query plan:
            SELECT * FROM events WHERE NOT deleted [AND status = :status | status != 'cancelled']
            ORDER BY start_time DESC LIMIT :limit
            → idx_events_start_time
        """
        query = select(Event).where(Event.deleted.is_(False))
        if status:
            query = query.where(Event.status == status)
        elif not include_cancelled:
            query = query.where(Event.status != "cancelled")
        query = query.order_by(Event.start_time.desc()).limit(limit)

        result = await db.execute(query)
        events = [EventResponse.model_validate(e) for e in result.scalars().all()]
        return EventListResponse(events=events, count=len(events))

    @translate_db_errors("search events")
    async def search_events(self, db: AsyncSession, query: str, limit: int = 50) -> EventListResponse:
        """Case-insensitive substring match on name or category."""
        term = query.strip()
        if not term:
            raise ValidationError("Search query must not be empty", field="q")

        stmt = (
            select(Event)
            .where(
                Event.deleted.is_(False),
                or_(
                    Event.name.icontains(term, autoescape=True),
                    Event.category.icontains(term, autoescape=True),
                )
            )
            .order_by(Event.start_time.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        events = [EventResponse.model_validate(e) for e in result.scalars().all()]
        return EventListResponse(events=events, count=len(events))

    @translate_db_errors("retrieve the event")
    async def get_event(self, db: AsyncSession, event_id: str) -> EventResponse:
        return EventResponse.model_validate(await self._load_event(db, event_id))

    @translate_db_errors("create the event")
    async def create_event(self, db: AsyncSession, payload: EventCreate) -> EventResponse:
        event = Event(**payload.model_dump())
        db.add(event)
        await db.flush()
        logger.info("Event created: %s (%s)", event.id, event.name)
        return EventResponse.model_validate(event)

    @translate_db_errors("update the event")
    async def update_event(
        self, db: AsyncSession, event_id: str, payload: EventUpdate
    ) -> EventResponse:
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")

        event = await self._load_event(db, event_id)
        for field, value in changes.items():
            setattr(event, field, value)

        if as_utc(event.end_time) < as_utc(event.start_time):
            raise ValidationError("end_time must not be before start_time", field="end_time")

        event.updated_at = utcnow()
        await db.flush()
        logger.info("Event updated: %s (%s)", event_id, ", ".join(sorted(changes)))
        return EventResponse.model_validate(event)

    @translate_db_errors("delete the event")
    async def delete_event(self, db: AsyncSession, event_id: str) -> None:
        event = await self._load_event(db, event_id)
        # SQLite ignores ON DELETE CASCADE unless foreign keys are enabled.
        await db.execute(delete(Stall).where(Stall.event_id == event_id))
        await db.delete(event)
        await db.flush()
        logger.info("Event deleted: %s", event_id)

    # ── Stalls ────────────────────────────────────────────────────────────

    @translate_db_errors("list stalls")
    async def list_stalls(
        self, db: AsyncSession, event_id: str, include_deleted: bool = False
    ) -> StallListResponse:
        await self._load_event(db, event_id)
        query = select(Stall).where(Stall.event_id == event_id)
        if not include_deleted:
            query = query.where(Stall.deleted.is_(False))
        result = await db.execute(query.order_by(Stall.name))
        stalls = [StallResponse.model_validate(s) for s in result.scalars().all()]
        return StallListResponse(stalls=stalls, count=len(stalls))

    @translate_db_errors("search stalls")
    async def search_stalls(
        self, db: AsyncSession, event_id: str, query: str
    ) -> StallListResponse:
        term = query.strip()
        if not term:
            raise ValidationError("Search query must not be empty", field="q")

        stmt = (
            select(Stall)
            .where(
                Stall.event_id == event_id,
                Stall.deleted.is_(False),
                or_(
                    Stall.name.icontains(term, autoescape=True),
                    Stall.category.icontains(term, autoescape=True),
                ),
            )
            .order_by(Stall.name)
        )
        result = await db.execute(stmt)
        stalls = [StallResponse.model_validate(s) for s in result.scalars().all()]
        return StallListResponse(stalls=stalls, count=len(stalls))

    @translate_db_errors("retrieve the stall")
    async def get_stall(self, db: AsyncSession, stall_id: str) -> StallResponse:
        return StallResponse.model_validate(await self._load_stall(db, stall_id))

    @translate_db_errors("retrieve the stall")
    async def get_stall_by_marker(
        self, db: AsyncSession, marker_id: str, event_id: Optional[str] = None
    ) -> StallResponse:
        """Manual marker entry. Without an event id the first match wins."""
        marker_id = normalize_marker_id(marker_id)
        query = select(Stall).where(Stall.marker_id == marker_id)
        if event_id:
            query = query.where(Stall.event_id == event_id)
        result = await db.execute(query.limit(1))
        stall = result.scalar_one_or_none()
        if stall is None:
            raise NotFoundError(resource="stall", context={"marker_id": marker_id})
        return StallResponse.model_validate(stall)

    @translate_db_errors("create the stall")
    async def create_stall(
        self, db: AsyncSession, event_id: str, payload: StallCreate
    ) -> StallResponse:
        await self._load_event(db, event_id)
        await self._ensure_marker_free(db, event_id, payload.marker_id)

        stall = Stall(event_id=event_id, view_count=0, rating=0.0, **payload.model_dump())
        db.add(stall)
        await db.flush()
        logger.info("Stall created: %s (marker=%s, event=%s)", stall.id, stall.marker_id, event_id)
        return StallResponse.model_validate(stall)

    @translate_db_errors("update the stall")
    async def update_stall(
        self, db: AsyncSession, stall_id: str, payload: StallUpdate
    ) -> StallResponse:
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")

        stall = await self._load_stall(db, stall_id)
        new_marker = changes.get("marker_id")
        if new_marker and new_marker != stall.marker_id:
            await self._ensure_marker_free(db, stall.event_id, new_marker)

        for field, value in changes.items():
            setattr(stall, field, value)
        stall.updated_at = utcnow()
        await db.flush()
        logger.info("Stall updated: %s (%s)", stall_id, ", ".join(sorted(changes)))
        return StallResponse.model_validate(stall)

    @translate_db_errors("delete the stall")
    async def delete_stall(self, db: AsyncSession, stall_id: str) -> None:
        stall = await self._load_stall(db, stall_id)
        await db.delete(stall)
        await db.flush()
        logger.info("Stall deleted: %s", stall_id)

    @translate_db_errors("record the stall view")
    async def increment_view_count(self, db: AsyncSession, stall_id: str) -> StallResponse:
        stall = await self._load_stall(db, stall_id)
        # Evaluated in SQL so concurrent views are not lost.
        stall.view_count = Stall.view_count + 1
        await db.flush()
        await db.refresh(stall)
        return StallResponse.model_validate(stall)

    @translate_db_errors("load stall analytics")
    async def get_stall_analytics(self, db: AsyncSession, stall_id: str) -> StallAnalyticsResponse:
        """
        Engagement counters for one stall.

        Query plan:
            SELECT activity_type, COUNT(*) FROM user_activity
            WHERE stall_id = :id GROUP BY activity_type
            → idx_user_activity_stall
        """
        await self._load_stall(db, stall_id)
        result = await db.execute(
            select(UserActivity.activity_type, func.count(UserActivity.id))
            .where(UserActivity.stall_id == stall_id)
            .group_by(UserActivity.activity_type)
        )
        counts = {activity_type: count for activity_type, count in result.all()}
        return StallAnalyticsResponse(
            stall_id=stall_id,
            scans=sum(counts.get(t, 0) for t in SCAN_TYPES),
            views=counts.get(VIEW_TYPE, 0),
            favorites=counts.get(FAVORITE_TYPE, 0),
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _load_event(self, db: AsyncSession, event_id: str) -> Event:
        event = await db.get(Event, event_id)
        if event is None:
            raise NotFoundError(resource="event", resource_id=event_id)
        return event

    async def _load_stall(self, db: AsyncSession, stall_id: str) -> Stall:
        stall = await db.get(Stall, stall_id)
        if stall is None:
            raise NotFoundError(resource="stall", resource_id=stall_id)
        return stall

    async def _ensure_marker_free(self, db: AsyncSession, event_id: str, marker_id: str) -> None:
        result = await db.execute(
            select(Stall.id).where(Stall.event_id == event_id, Stall.marker_id == marker_id)
        )
        existing: List[str] = list(result.scalars().all())
        if existing:
            raise ConflictError(
                message=f"Marker '{marker_id}' is already assigned to a stall in this event",
                context={"event_id": event_id, "marker_id": marker_id, "stall_id": existing[0]},
            )


catalog_service = CatalogService()
