"""
EventLens Backend — Stall SQLAlchemy Model
===========================================

What:  ORM model representing the `stalls` table.
Who:   Catalog service (CRUD), record store (`fetch_stall_by_marker`), Alembic.

Table Design:
    - event_id: the single event this stall belongs to
    - marker_id: value printed on the physical AR marker; unique within an
      event, not globally (enforced by the catalog service)
    - status: active | inactive; `deleted` marks a soft delete and is read
      as inactive by the scan pipeline
    - view_count / rating: engagement counters maintained by the catalog
"""

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eventlens.database import Base
from eventlens.models.event import new_document_id, utcnow

STALL_STATUSES = ("active", "inactive")


class Stall(Base):
    """
    A vendor booth tied to exactly one event.

    Query Patterns:
        - Stall by marker id (every scan): idx_stalls_marker_id
        - Stalls of an event ordered by name: idx_stalls_event_id_name
    """

    __tablename__ = "stalls"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_document_id)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    marker_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    location: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    contact_info: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    offers: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    ar_model_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_stalls_marker_id", marker_id),
        Index("idx_stalls_event_id_name", event_id, name),
    )

    def __repr__(self) -> str:
        return (
            f"<Stall(id={self.id}, marker_id='{self.marker_id}', "
            f"event_id='{self.event_id}', status='{self.status}')>"
        )
