"""
EventLens Backend — AR Scan Session Routes
===========================================

What:  The detector boundary. An AR screen opens a session bound to an
       event, posts every "marker detected" signal to it, and deletes it
       when the screen is torn down.
Who:   The mobile AR screen.

Endpoints:
    POST   /api/sessions                     open a session
    GET    /api/sessions/{id}                session counters
    PUT    /api/sessions/{id}/event          switch the active event
    DELETE /api/sessions/{id}                end the session
    POST   /api/sessions/{id}/scans          one detected marker

Scan responses are always 200: every scan outcome, including network
errors, is data in the report. `status: suppressed` means the detection
fell inside the marker's cooldown window and nothing was looked up.
"""

import logging

from fastapi import APIRouter, Depends, status

from eventlens.schemas.common import ErrorResponse
from eventlens.schemas.scan import (
    ScanRequest,
    ScanResponse,
    SessionCreate,
    SessionEventUpdate,
    SessionResponse,
)
from eventlens.services.scan_session import ScanSession, ScanSessionManager, session_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["Scan Sessions"])


def get_session_manager() -> ScanSessionManager:
    """Dependency hook; tests override it with a manager over a fake store."""
    return session_manager


def _session_response(session: ScanSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        event_id=session.event_id,
        user_id=session.user_id,
        started_at=session.started_at,
        markers_scanned=session.markers_scanned,
        unique_markers=session.unique_markers,
        overlay_views=session.overlay_views,
        active=not session.closed,
    )


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open an AR scan session",
)
async def create_session(
    payload: SessionCreate,
    manager: ScanSessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = manager.create(event_id=payload.event_id, user_id=payload.user_id)
    return _session_response(session)


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Unknown or expired session", "model": ErrorResponse}},
    summary="Get scan session counters",
)
async def get_session(
    session_id: str,
    manager: ScanSessionManager = Depends(get_session_manager),
) -> SessionResponse:
    return _session_response(manager.get(session_id))


@router.put(
    "/{session_id}/event",
    response_model=SessionResponse,
    responses={404: {"description": "Unknown or expired session", "model": ErrorResponse}},
    summary="Switch the session's active event",
)
async def switch_event(
    session_id: str,
    payload: SessionEventUpdate,
    manager: ScanSessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = manager.get(session_id)
    session.switch_event(payload.event_id)
    return _session_response(session)


@router.delete(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Unknown or expired session", "model": ErrorResponse}},
    summary="End an AR scan session",
)
async def end_session(
    session_id: str,
    manager: ScanSessionManager = Depends(get_session_manager),
) -> SessionResponse:
    """In-flight scans of the session are abandoned without a report."""
    return _session_response(manager.end(session_id))


@router.post(
    "/{session_id}/scans",
    response_model=ScanResponse,
    responses={404: {"description": "Unknown or expired session", "model": ErrorResponse}},
    summary="Process a detected marker",
)
async def scan_marker(
    session_id: str,
    payload: ScanRequest,
    manager: ScanSessionManager = Depends(get_session_manager),
) -> ScanResponse:
    session = manager.get(session_id)
    report = await session.handle_detection(payload.marker_id)
    if report is None:
        return ScanResponse(status="suppressed")
    return ScanResponse(status="processed", report=report)
