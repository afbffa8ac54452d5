"""
EventLens Backend — User Activity Schemas
==========================================

What:  The activity record written to `user_activity`, shared by the
       analytics sink (scan and AR session records) and the activity API
       (views, favourites).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Activity types produced by the scan flow.
SCAN_ACTIVITY = "ar_marker_scan"
SESSION_START_ACTIVITY = "ar_session_start"
SESSION_END_ACTIVITY = "ar_session_end"


class ActivityRecord(BaseModel):
    """
    One user_activity row before it is stored.

    user_id is optional: scans from anonymous sessions are still recorded
    for latency analytics.
    """

    activity_type: str = Field(min_length=1, max_length=50)
    user_id: Optional[str] = Field(default=None, max_length=128)
    event_id: Optional[str] = Field(default=None, max_length=64)
    stall_id: Optional[str] = Field(default=None, max_length=64)
    marker_id: Optional[str] = Field(default=None, max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None


class ActivityResponse(BaseModel):
    id: str
    activity_type: str
    user_id: Optional[str] = None
    event_id: Optional[str] = None
    stall_id: Optional[str] = None
    marker_id: Optional[str] = None
    details: Dict[str, Any]
    timestamp: datetime

    model_config = {"from_attributes": True}


class ActivityListResponse(BaseModel):
    activities: List[ActivityResponse]
    count: int


class FavoritesResponse(BaseModel):
    user_id: str
    stall_ids: List[str]
