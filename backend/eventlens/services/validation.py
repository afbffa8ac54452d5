"""
EventLens Backend — Scan Validation Pipeline
=============================================

What:  Turns one LookupResult into exactly one ScanOutcome.
How:   A single pass over ordered checks; the first failing check wins.

Check order:
    1. stall fetch failed, or event fetch failed with nothing cached
                                        → network_error(retryable=True)
    2. stall absent                     → marker_not_found
    3. event absent                     → event_not_found
    4. stall.event_id != session event  → wrong_event(stall.event_id)
    5. stall not active                 → stall_inactive
    6. event has ended                  → event_ended
    7. otherwise                        → success(stall, event)

Missing data is told apart from business-rule violations so the user
message is specific. A network failure is checked first because it makes
"absent" meaningless.

Pure function: no I/O, no clock reads (the caller passes `now`).
"""

from datetime import datetime

from eventlens.schemas.scan import LookupResult, ScanOutcome


def validate_scan(lookup: LookupResult, session_event_id: str, now: datetime) -> ScanOutcome:
    if lookup.stall_failed or lookup.event_failed:
        return ScanOutcome.network_error(retryable=True)

    stall = lookup.stall
    if stall is None:
        return ScanOutcome.marker_not_found()

    event = lookup.event
    if event is None:
        return ScanOutcome.event_not_found()

    if stall.event_id != session_event_id:
        return ScanOutcome.wrong_event(stall)

    if not stall.is_active:
        return ScanOutcome.stall_inactive(stall)

    if event.has_ended(now):
        return ScanOutcome.event_ended(stall, event)

    return ScanOutcome.success(stall, event)
