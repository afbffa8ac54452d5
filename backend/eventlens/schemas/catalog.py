"""
EventLens Backend — Catalog Request/Response Schemas
=====================================================

What:  Pydantic models for event and stall CRUD and browsing.
Who:   Events/stalls routes (request bodies, response models) and the
       catalog service (builds responses from ORM rows).

Update models are partial: only fields present in the request body are
written (`model_dump(exclude_unset=True)`).

Stall marker ids are stored the way the scan endpoint normalises them
(`qr_ABC` is stored as `ABC`), so every registered marker is scannable.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from eventlens.schemas.scan import normalize_marker_id

EventStatus = Literal["upcoming", "ongoing", "ended", "cancelled"]
StallStatus = Literal["active", "inactive"]


# ══════════════════════════════════════════════════════════════════════════
# Events
# ══════════════════════════════════════════════════════════════════════════


class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    category: str = Field(default="", max_length=100)
    organizer: str = Field(default="", max_length=200)
    image_url: str = Field(default="", max_length=500)
    location: Dict[str, Any] = Field(default_factory=dict)
    start_time: datetime
    end_time: datetime
    status: EventStatus = "upcoming"

    @model_validator(mode="after")
    def check_schedule(self) -> "EventCreate":
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class EventUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    organizer: Optional[str] = Field(default=None, max_length=200)
    image_url: Optional[str] = Field(default=None, max_length=500)
    location: Optional[Dict[str, Any]] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[EventStatus] = None
    deleted: Optional[bool] = None


class EventResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    organizer: str
    image_url: str
    location: Dict[str, Any]
    start_time: datetime
    end_time: datetime
    status: str
    deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: List[EventResponse]
    count: int


# ══════════════════════════════════════════════════════════════════════════
# Stalls
# ══════════════════════════════════════════════════════════════════════════


def _normalized_marker(raw: str) -> str:
    value = normalize_marker_id(raw)
    if not value:
        raise ValueError("marker_id must not be blank")
    return value


class StallCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    marker_id: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=5000)
    category: str = Field(default="", max_length=100)
    status: StallStatus = "active"
    location: Dict[str, Any] = Field(default_factory=dict)
    contact_info: Dict[str, Any] = Field(default_factory=dict)
    images: List[str] = Field(default_factory=list)
    offers: List[str] = Field(default_factory=list)
    ar_model_url: str = Field(default="", max_length=500)

    @field_validator("marker_id")
    @classmethod
    def normalize_marker(cls, v: str) -> str:
        return _normalized_marker(v)


class StallUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    marker_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    status: Optional[StallStatus] = None
    deleted: Optional[bool] = None
    location: Optional[Dict[str, Any]] = None
    contact_info: Optional[Dict[str, Any]] = None
    images: Optional[List[str]] = None
    offers: Optional[List[str]] = None
    ar_model_url: Optional[str] = Field(default=None, max_length=500)
    rating: Optional[float] = Field(default=None, ge=0, le=5)

    @field_validator("marker_id")
    @classmethod
    def normalize_marker(cls, v: Optional[str]) -> Optional[str]:
        return _normalized_marker(v) if v is not None else None


class StallResponse(BaseModel):
    id: str
    event_id: str
    marker_id: str
    name: str
    description: str
    category: str
    status: str
    deleted: bool
    location: Dict[str, Any]
    contact_info: Dict[str, Any]
    images: List[str]
    offers: List[str]
    ar_model_url: str
    view_count: int
    rating: float
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StallListResponse(BaseModel):
    stalls: List[StallResponse]
    count: int


class StallAnalyticsResponse(BaseModel):
    """Engagement counters derived from user_activity rows for one stall."""

    stall_id: str
    scans: int
    views: int
    favorites: int
