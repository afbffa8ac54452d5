"""
EventLens Backend — Event SQLAlchemy Model
===========================================

What:  ORM model representing the `events` table.
Who:   Catalog service (CRUD), record store (`fetch_event`), Alembic.

Table Design:
    - id: opaque string document id (uuid4 hex by default; imported
      documents keep their original ids)
    - status: upcoming | ongoing | ended | cancelled
    - deleted: soft delete; a deleted event reads as ended to the scan
      flow and is hidden from browse and search
    - start_time / end_time: timezone-aware; "has ended" is derived from
      status == 'ended' or end_time in the past
    - location: free-form JSON ({latitude, longitude, address})
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eventlens.database import Base

EVENT_STATUSES = ("upcoming", "ongoing", "ended", "cancelled")


def new_document_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    """
    An event that owns a set of stalls.

    Query Patterns:
        - Event by id (every scan, unless cached): primary key lookup
        - Browse list: ORDER BY start_time DESC, filtered on status
    """

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_document_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    organizer: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    image_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    location: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="upcoming",
        comment="upcoming, ongoing, ended, cancelled",
    )
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_events_start_time", start_time.desc()),
        Index("idx_events_status", status),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name='{self.name}', status='{self.status}')>"
