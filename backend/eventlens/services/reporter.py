"""
EventLens Backend — Scan Result Reporter
=========================================

What:  Presents a ScanOutcome: severity, banner title, message, latency class.
       Independently hands an analytics record to the fire-and-forget sink.
Who:   ScanSession, once per processed scan.

Severity mapping:
    success                                             → success
    marker_not_found, wrong_event, stall_inactive,
    event_ended                                         → warning
    event_not_found, network_error                      → error

Missing event data is an error (the session context itself is broken);
a missing stall is only a warning.

Latency classes (configurable):
    < 200ms excellent │ < 500ms good │ < 1000ms poor │ otherwise critical
"""

import logging
from typing import Any, Dict, Optional, Tuple

from eventlens.config import settings
from eventlens.schemas.activity import SCAN_ACTIVITY, ActivityRecord
from eventlens.schemas.scan import (
    LatencyClass,
    OutcomeKind,
    ScanOutcome,
    ScanReport,
    Severity,
)
from eventlens.services.analytics import AnalyticsSink

logger = logging.getLogger(__name__)


SEVERITY_BY_KIND = {
    OutcomeKind.SUCCESS: Severity.SUCCESS,
    OutcomeKind.MARKER_NOT_FOUND: Severity.WARNING,
    OutcomeKind.WRONG_EVENT: Severity.WARNING,
    OutcomeKind.STALL_INACTIVE: Severity.WARNING,
    OutcomeKind.EVENT_ENDED: Severity.WARNING,
    OutcomeKind.EVENT_NOT_FOUND: Severity.ERROR,
    OutcomeKind.NETWORK_ERROR: Severity.ERROR,
}


def classify_latency(
    elapsed_ms: float,
    excellent_ms: int = 200,
    good_ms: int = 500,
    poor_ms: int = 1000,
) -> LatencyClass:
    if elapsed_ms < excellent_ms:
        return LatencyClass.EXCELLENT
    if elapsed_ms < good_ms:
        return LatencyClass.GOOD
    if elapsed_ms < poor_ms:
        return LatencyClass.POOR
    return LatencyClass.CRITICAL


def describe_outcome(outcome: ScanOutcome, marker_id: str) -> Tuple[str, str]:
    """Returns (title, message) for the presentation layer."""
    kind = outcome.kind
    stall = outcome.stall

    if kind is OutcomeKind.SUCCESS:
        return "Stall found", f"Showing {stall.name}"
    if kind is OutcomeKind.MARKER_NOT_FOUND:
        return "Marker not recognized", f"Marker {marker_id} not registered"
    if kind is OutcomeKind.EVENT_NOT_FOUND:
        return "Event unavailable", "Event data missing. Contact organizer."
    if kind is OutcomeKind.WRONG_EVENT:
        return "Wrong event", "This marker is from another event"
    if kind is OutcomeKind.STALL_INACTIVE:
        return "Stall closed", f"'{stall.name}' is inactive"
    if kind is OutcomeKind.EVENT_ENDED:
        return "Event ended", "This event has ended"

    if outcome.retryable:
        return "Connection problem", "Failed to load stall data. Point the camera at the marker to try again."
    return "Connection problem", "Failed to load stall data"


class ResultReporter:
    def __init__(
        self,
        sink: AnalyticsSink,
        excellent_ms: Optional[int] = None,
        good_ms: Optional[int] = None,
        poor_ms: Optional[int] = None,
        latency_budget_ms: Optional[int] = None,
    ):
        self.sink = sink
        self.excellent_ms = excellent_ms if excellent_ms is not None else settings.latency_excellent_ms
        self.good_ms = good_ms if good_ms is not None else settings.latency_good_ms
        self.poor_ms = poor_ms if poor_ms is not None else settings.latency_poor_ms
        self.latency_budget_ms = (
            latency_budget_ms if latency_budget_ms is not None else settings.scan_latency_budget_ms
        )

    def report(
        self,
        outcome: ScanOutcome,
        marker_id: str,
        elapsed_ms: float,
        event_id: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ScanReport:
        """
        Build the user-facing report and emit the analytics record.

        The analytics half never raises and is never awaited; whatever
        happens to it, the returned report is the same.
        """
        latency_class = classify_latency(
            elapsed_ms, self.excellent_ms, self.good_ms, self.poor_ms
        )
        title, message = describe_outcome(outcome, marker_id)

        report = ScanReport(
            marker_id=marker_id,
            outcome=outcome.kind,
            severity=SEVERITY_BY_KIND[outcome.kind],
            title=title,
            message=message,
            retryable=outcome.retryable,
            elapsed_ms=round(max(elapsed_ms, 0.0), 2),
            latency_class=latency_class,
            stall=outcome.stall,
            event=outcome.event,
            actual_event_id=outcome.actual_event_id,
        )

        log_level = logging.WARNING if elapsed_ms > self.latency_budget_ms else logging.INFO
        logger.log(
            log_level,
            "Scan marker=%s outcome=%s %.1fms (%s)",
            marker_id,
            outcome.kind.value,
            elapsed_ms,
            latency_class.value,
        )

        self._emit(report, event_id, user_id, details)
        return report

    def _emit(
        self,
        report: ScanReport,
        event_id: Optional[str],
        user_id: Optional[str],
        details: Optional[Dict[str, Any]],
    ) -> None:
        try:
            record = ActivityRecord(
                activity_type=SCAN_ACTIVITY,
                user_id=user_id,
                event_id=event_id,
                stall_id=report.stall.id if report.stall else None,
                marker_id=report.marker_id,
                details={
                    "outcome": report.outcome.value,
                    "elapsed_ms": report.elapsed_ms,
                    "latency_class": report.latency_class.value,
                    **(details or {}),
                },
            )
            self.sink.submit(record)
        except Exception as e:
            logger.warning("Scan analytics skipped (%s): %s", type(e).__name__, e)
