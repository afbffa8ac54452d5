"""
EventLens Backend — User Activity SQLAlchemy Model
===================================================

What:  Append-only `user_activity` table for views, favourites, scans and
       AR session analytics.
Who:   Written by the analytics sink (scan records) and the activity
       service; read for per-user history and per-stall counters.

`details` maps to the `metadata` column; `metadata` itself is reserved on
declarative classes.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from eventlens.database import Base
from eventlens.models.event import new_document_id, utcnow


class UserActivity(Base):
    __tablename__ = "user_activity"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_document_id)
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    event_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    stall_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    marker_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    details: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_user_activity_user_ts", user_id, timestamp.desc()),
        Index("idx_user_activity_stall", stall_id),
    )

    def __repr__(self) -> str:
        return (
            f"<UserActivity(id={self.id}, type='{self.activity_type}', "
            f"user_id='{self.user_id}')>"
        )
