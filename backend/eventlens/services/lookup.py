"""
EventLens Backend — Record Store Client
========================================

What:  Resolves one scanned marker: fetches the stall by marker id and the
       session's event by id, concurrently, and packages both into a
       LookupResult with per-fetch latency.
How:   Two coroutines under `asyncio.gather`; the scan waits for both
       (join, not first-completed). The event fetch consults the session's
       EventCache first and stores what it successfully fetched.

Absence vs failure:
    found       → record set, error None
    absent      → record None, error None
    unreachable → record None, error = message (RecordStoreUnavailableError)

A stall is never taken from anywhere but the store. Any other exception
propagates to the caller.
"""

import asyncio
import logging
import time
from typing import Optional, Tuple

from eventlens.exceptions import RecordStoreUnavailableError
from eventlens.schemas.scan import EventRecord, LookupResult, StallRecord
from eventlens.services.event_cache import EventCache
from eventlens.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RecordStoreClient:
    def __init__(self, store: RecordStore):
        self.store = store

    async def lookup(
        self,
        marker_id: str,
        event_id: str,
        cache: Optional[EventCache] = None,
    ) -> LookupResult:
        """
        Fetch the stall registered under `marker_id` and the event `event_id`.

        Args:
            marker_id: Normalised marker id from the detector
            event_id: The session's active event
            cache: The session's event cache, if any

        Returns:
            LookupResult; transport failures are recorded in it, not raised.
        """
        (stall, stall_error, stall_ms), (event, event_error, event_ms, cached) = (
            await asyncio.gather(
                self._fetch_stall(marker_id, event_id),
                self._fetch_event(event_id, cache),
            )
        )

        logger.debug(
            "Lookup marker=%s event=%s stall=%s (%.1fms) event=%s (%.1fms%s)",
            marker_id,
            event_id,
            "hit" if stall else ("error" if stall_error else "miss"),
            stall_ms,
            "hit" if event else ("error" if event_error else "miss"),
            event_ms,
            ", cached" if cached else "",
        )

        return LookupResult(
            marker_id=marker_id,
            event_id=event_id,
            stall=stall,
            event=event,
            stall_error=stall_error,
            event_error=event_error,
            stall_latency_ms=stall_ms,
            event_latency_ms=event_ms,
            event_from_cache=cached,
        )

    async def _fetch_stall(
        self, marker_id: str, event_id: str
    ) -> Tuple[Optional[StallRecord], Optional[str], float]:
        started = time.perf_counter()
        try:
            stall = await self.store.fetch_stall_by_marker(marker_id, event_id)
        except RecordStoreUnavailableError as e:
            return None, e.message, _elapsed_ms(started)
        return stall, None, _elapsed_ms(started)

    async def _fetch_event(
        self, event_id: str, cache: Optional[EventCache]
    ) -> Tuple[Optional[EventRecord], Optional[str], float, bool]:
        if cache is not None:
            cache.bind(event_id)
            cached = cache.get(event_id)
            if cached is not None:
                return cached, None, 0.0, True

        started = time.perf_counter()
        try:
            event = await self.store.fetch_event(event_id)
        except RecordStoreUnavailableError as e:
            return None, e.message, _elapsed_ms(started), False

        if event is not None and cache is not None:
            cache.store(event)
        return event, None, _elapsed_ms(started), False
