"""
EventLens Backend — Marker Scan Data Model
===========================================

What:  Pydantic models for the marker-lookup flow: the stall/event records the
       pipeline reads, the transient lookup result, the tagged scan outcome,
       the user-facing report, and the HTTP request/response bodies.
Who:   Record store (produces records), record store client (LookupResult),
       validation pipeline (ScanOutcome), reporter (ScanReport), routes.

Outcome taxonomy:
    success | marker_not_found | event_not_found | wrong_event
    | stall_inactive | event_ended | network_error

    Only network_error may be retryable. Every other kind needs a fresh
    marker detection to re-attempt.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MARKER_NODE_PREFIXES = ("marker_", "qr_")


def as_utc(value: datetime) -> datetime:
    """Naive datetimes (SQLite returns these) are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_marker_id(raw: str) -> str:
    """
    Strips the detector's node-name prefix from a marker id.

    The AR detector names nodes `marker_<ID>` or `qr_<ID>`; plain ids pass
    through unchanged. Everything after the prefix is the id, so ids that
    contain underscores (STALL_001) survive intact.
    """
    value = raw.strip()
    for prefix in MARKER_NODE_PREFIXES:
        if value.startswith(prefix) and len(value) > len(prefix):
            return value[len(prefix):]
    return value


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    MARKER_NOT_FOUND = "marker_not_found"
    EVENT_NOT_FOUND = "event_not_found"
    WRONG_EVENT = "wrong_event"
    STALL_INACTIVE = "stall_inactive"
    EVENT_ENDED = "event_ended"
    NETWORK_ERROR = "network_error"


class Severity(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class LatencyClass(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"
    CRITICAL = "critical"


# ══════════════════════════════════════════════════════════════════════════
# Records read by the pipeline
# ══════════════════════════════════════════════════════════════════════════


class StallRecord(BaseModel):
    """Read-only view of a stall as the scan pipeline sees it."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    event_id: str
    marker_id: str
    name: str
    category: str = ""
    description: str = ""
    status: str = "active"
    deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active" and not self.deleted


class EventRecord(BaseModel):
    """Read-only view of an event as the scan pipeline sees it."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    start_time: datetime
    end_time: datetime
    status: str = "upcoming"
    deleted: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    def has_ended(self, now: datetime) -> bool:
        """An event has ended once marked 'ended', soft-deleted, or past its end time."""
        return self.status == "ended" or self.deleted or self.end_time < as_utc(now)


class LookupResult(BaseModel):
    """
    Everything one scan learned from the record store.

    Transient: built by RecordStoreClient.lookup(), consumed by the
    validation pipeline, then discarded. `*_error` holds the message of a
    transport failure; it is None when the fetch completed (found or not).
    """

    marker_id: str
    event_id: str
    stall: Optional[StallRecord] = None
    event: Optional[EventRecord] = None
    stall_error: Optional[str] = None
    event_error: Optional[str] = None
    stall_latency_ms: float = 0.0
    event_latency_ms: float = 0.0
    event_from_cache: bool = False

    @property
    def stall_failed(self) -> bool:
        return self.stall_error is not None

    @property
    def event_failed(self) -> bool:
        return self.event_error is not None and self.event is None


# ══════════════════════════════════════════════════════════════════════════
# Outcome and report
# ══════════════════════════════════════════════════════════════════════════


class ScanOutcome(BaseModel):
    """
    Tagged result of one scan.

    Payload per kind:
        success          → stall, event
        wrong_event      → actual_event_id (and the stall that was found)
        stall_inactive   → stall
        event_ended      → stall, event
        network_error    → retryable
        marker_not_found / event_not_found → nothing
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    stall: Optional[StallRecord] = None
    event: Optional[EventRecord] = None
    actual_event_id: Optional[str] = None
    retryable: bool = False

    @classmethod
    def success(cls, stall: StallRecord, event: EventRecord) -> "ScanOutcome":
        return cls(kind=OutcomeKind.SUCCESS, stall=stall, event=event)

    @classmethod
    def marker_not_found(cls) -> "ScanOutcome":
        return cls(kind=OutcomeKind.MARKER_NOT_FOUND)

    @classmethod
    def event_not_found(cls) -> "ScanOutcome":
        return cls(kind=OutcomeKind.EVENT_NOT_FOUND)

    @classmethod
    def wrong_event(cls, stall: StallRecord) -> "ScanOutcome":
        return cls(kind=OutcomeKind.WRONG_EVENT, stall=stall, actual_event_id=stall.event_id)

    @classmethod
    def stall_inactive(cls, stall: StallRecord) -> "ScanOutcome":
        return cls(kind=OutcomeKind.STALL_INACTIVE, stall=stall)

    @classmethod
    def event_ended(cls, stall: StallRecord, event: EventRecord) -> "ScanOutcome":
        return cls(kind=OutcomeKind.EVENT_ENDED, stall=stall, event=event)

    @classmethod
    def network_error(cls, retryable: bool = True) -> "ScanOutcome":
        return cls(kind=OutcomeKind.NETWORK_ERROR, retryable=retryable)

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


class ScanReport(BaseModel):
    """
    What the presentation layer receives for one processed scan.

    `title` is the short banner text; `message` the longer explanation.
    """

    marker_id: str
    outcome: OutcomeKind
    severity: Severity
    title: str
    message: str
    retryable: bool = False
    elapsed_ms: float = Field(ge=0)
    latency_class: LatencyClass
    stall: Optional[StallRecord] = None
    event: Optional[EventRecord] = None
    actual_event_id: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# HTTP bodies
# ══════════════════════════════════════════════════════════════════════════


class ScanRequest(BaseModel):
    """Detector signal: one detected marker."""

    marker_id: str = Field(min_length=1, max_length=100, description="Marker id or detector node name")

    @field_validator("marker_id")
    @classmethod
    def strip_node_prefix(cls, v: str) -> str:
        normalized = normalize_marker_id(v)
        if not normalized:
            raise ValueError("marker_id must not be blank")
        return normalized


class ScanResponse(BaseModel):
    """
    `processed` carries the report; `suppressed` means the marker is inside
    its cooldown window (or the session is closing) and nothing was looked up.
    """

    status: str = Field(description="processed | suppressed")
    report: Optional[ScanReport] = None


class SessionCreate(BaseModel):
    event_id: str = Field(min_length=1, max_length=64)
    user_id: Optional[str] = Field(default=None, max_length=128)


class SessionEventUpdate(BaseModel):
    event_id: str = Field(min_length=1, max_length=64)


class SessionResponse(BaseModel):
    session_id: str
    event_id: str
    user_id: Optional[str] = None
    started_at: datetime
    markers_scanned: int
    unique_markers: int
    overlay_views: int
    active: bool
