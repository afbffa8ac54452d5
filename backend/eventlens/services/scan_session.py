"""
EventLens Backend — AR Scan Sessions
=====================================

What:  One ScanSession per open AR screen. It owns the session's EventCache
       and CooldownTracker and runs the scan flow for each detected marker:

           detection → cooldown gate → lookup (stall ‖ event) → validate
                     → report (+ fire-and-forget analytics)

Who:   ScanSessionManager creates, finds and ends sessions for the
       /api/sessions routes.

Lifecycle:
    create  → ar_session_start analytics
    scans   → counters (markers scanned, unique markers, overlay views)
    end     → in-flight scans cancelled, ar_session_end analytics with
              duration and scan efficiency; cache and cooldown discarded
    idle    → sessions untouched for session_idle_timeout_seconds are ended
              lazily on the next manager access

A scan whose session is torn down mid-lookup returns no report and emits no
analytics.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from eventlens.config import settings
from eventlens.exceptions import SessionNotFoundError
from eventlens.schemas.activity import (
    SESSION_END_ACTIVITY,
    SESSION_START_ACTIVITY,
    ActivityRecord,
)
from eventlens.schemas.scan import ScanOutcome, ScanReport, normalize_marker_id
from eventlens.services.analytics import AnalyticsSink, analytics_sink
from eventlens.services.cooldown import CooldownTracker
from eventlens.services.event_cache import EventCache
from eventlens.services.lookup import RecordStoreClient
from eventlens.services.record_store import RecordStore, record_store
from eventlens.services.reporter import ResultReporter
from eventlens.services.validation import validate_scan

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanSession:
    def __init__(
        self,
        event_id: str,
        client: RecordStoreClient,
        reporter: ResultReporter,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        cooldown_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.event_id = event_id
        self.user_id = user_id
        self.client = client
        self.reporter = reporter
        self._clock = clock
        self._now = now

        self.cache = EventCache(event_id, clock=clock)
        self.cooldown = CooldownTracker(
            window_seconds=cooldown_seconds if cooldown_seconds is not None else settings.scan_cooldown_seconds,
            clock=clock,
        )

        self.started_at = now()
        self._started_monotonic = clock()
        self.last_activity = self._started_monotonic
        self.markers_scanned = 0
        self.overlay_views = 0
        self._unique_markers: Set[str] = set()
        self._in_flight: Set[asyncio.Task] = set()
        self.closed = False

    @property
    def unique_markers(self) -> int:
        return len(self._unique_markers)

    @property
    def duration_seconds(self) -> float:
        return max(self._clock() - self._started_monotonic, 0.0)

    @property
    def scan_efficiency(self) -> float:
        """Share of processed scans that produced an overlay."""
        if self.markers_scanned == 0:
            return 0.0
        return round(self.overlay_views / self.markers_scanned, 2)

    # ── Scan flow ─────────────────────────────────────────────────────────

    async def handle_detection(self, marker_id: str) -> Optional[ScanReport]:
        """
        Process one "marker detected" signal.

        Returns:
            The ScanReport, or None when the detection was suppressed
            (cooldown window, closed session) or the session was torn down
            while the lookup was in flight.
        """
        if self.closed:
            return None

        marker_id = normalize_marker_id(marker_id)
        if not self.cooldown.try_acquire(marker_id):
            logger.debug("Marker %s inside cooldown window, ignored", marker_id)
            return None

        self.last_activity = self._clock()
        task = asyncio.create_task(self._process(marker_id))
        self._in_flight.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self.closed and task.cancelled():
                logger.info("Scan of %s abandoned: session %s closed", marker_id, self.session_id)
                return None
            raise
        finally:
            self._in_flight.discard(task)

    async def _process(self, marker_id: str) -> Optional[ScanReport]:
        started = time.perf_counter()
        event_id = self.event_id
        event_from_cache = False

        try:
            lookup = await self.client.lookup(marker_id, event_id, self.cache)
            event_from_cache = lookup.event_from_cache
            outcome = validate_scan(lookup, event_id, self._now())
        except Exception:
            logger.exception("Unexpected failure scanning marker %s", marker_id)
            outcome = ScanOutcome.network_error(retryable=False)

        elapsed_ms = (time.perf_counter() - started) * 1000

        if self.closed:
            return None

        self.markers_scanned += 1
        self._unique_markers.add(marker_id)
        if outcome.is_success:
            self.overlay_views += 1

        return self.reporter.report(
            outcome,
            marker_id,
            elapsed_ms,
            event_id=event_id,
            user_id=self.user_id,
            details={
                "session_id": self.session_id,
                "scan_sequence": self.markers_scanned,
                "event_from_cache": event_from_cache,
            },
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def switch_event(self, event_id: str) -> None:
        """Rebind the session to another event; the cached event is dropped."""
        if event_id == self.event_id:
            return
        logger.info("Session %s switched event %s → %s", self.session_id, self.event_id, event_id)
        self.event_id = event_id
        self.cache.bind(event_id)
        self.cooldown.clear()
        self.last_activity = self._clock()

    def start(self) -> None:
        self._emit(SESSION_START_ACTIVITY, {"session_id": self.session_id})

    def close(self) -> None:
        """
        Tear the session down. In-flight scans are cancelled and will not
        report or emit analytics. Safe to call more than once.
        """
        if self.closed:
            return
        self.closed = True

        for task in list(self._in_flight):
            task.cancel()

        self._emit(
            SESSION_END_ACTIVITY,
            {
                "session_id": self.session_id,
                "session_duration": round(self.duration_seconds, 1),
                "total_markers_scanned": self.markers_scanned,
                "unique_markers_scanned": self.unique_markers,
                "overlay_views": self.overlay_views,
                "scan_efficiency": self.scan_efficiency,
            },
        )
        self.cooldown.clear()
        self.cache.invalidate()

    def is_idle(self, timeout_seconds: float) -> bool:
        return not self._in_flight and self._clock() - self.last_activity >= timeout_seconds

    def _emit(self, activity_type: str, details: Dict[str, Any]) -> None:
        try:
            self.reporter.sink.submit(
                ActivityRecord(
                    activity_type=activity_type,
                    user_id=self.user_id,
                    event_id=self.event_id,
                    details=details,
                )
            )
        except Exception as e:
            logger.warning("Session analytics skipped (%s): %s", type(e).__name__, e)


class ScanSessionManager:
    """
    Registry of open scan sessions.

    Sessions are explicit objects: each carries its own cache and cooldown
    state, and nothing about one session leaks into another.
    """

    def __init__(
        self,
        store: RecordStore,
        sink: AnalyticsSink,
        idle_timeout_seconds: Optional[float] = None,
        cooldown_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = RecordStoreClient(store)
        self.reporter = ResultReporter(sink)
        self.idle_timeout_seconds = (
            idle_timeout_seconds if idle_timeout_seconds is not None else settings.session_idle_timeout_seconds
        )
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._sessions: Dict[str, ScanSession] = {}

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    def create(self, event_id: str, user_id: Optional[str] = None) -> ScanSession:
        self.sweep_idle()
        session = ScanSession(
            event_id=event_id,
            client=self.client,
            reporter=self.reporter,
            user_id=user_id,
            cooldown_seconds=self.cooldown_seconds,
            clock=self._clock,
        )
        self._sessions[session.session_id] = session
        session.start()
        logger.info(
            "Scan session %s started (event=%s, user=%s)",
            session.session_id,
            event_id,
            user_id or "anonymous",
        )
        return session

    def get(self, session_id: str) -> ScanSession:
        self.sweep_idle()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def end(self, session_id: str) -> ScanSession:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.close()
        logger.info(
            "Scan session %s ended after %.1fs (%d scans, %d unique)",
            session_id,
            session.duration_seconds,
            session.markers_scanned,
            session.unique_markers,
        )
        return session

    def sweep_idle(self) -> List[str]:
        """End every session idle past the timeout; returns their ids."""
        expired = [
            sid for sid, session in self._sessions.items()
            if session.is_idle(self.idle_timeout_seconds)
        ]
        for sid in expired:
            logger.info("Scan session %s expired after idling", sid)
            self._sessions.pop(sid).close()
        return expired

    def close_all(self) -> None:
        for sid in list(self._sessions):
            self._sessions.pop(sid).close()


session_manager = ScanSessionManager(record_store, analytics_sink)
