"""
EventLens Backend — Event Cache
================================

What:  Single-slot cache of the active event's record for one AR session.
Why:   Every scan in a session targets the same event, so after the first
       successful fetch the event lookup costs nothing.

Rules:
    - Holds at most one event, always the session's currently bound event.
    - bind() to a different event id clears the slot.
    - Only a successfully fetched event is stored; absence and transport
      failures never populate it.
    - Event records change rarely; there is no TTL. `fetched_at` is exposed
      for diagnostics.
"""

import logging
import time
from typing import Callable, Optional

from eventlens.schemas.scan import EventRecord

logger = logging.getLogger(__name__)


class EventCache:
    def __init__(self, event_id: Optional[str] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._event_id = event_id
        self._event: Optional[EventRecord] = None
        self.fetched_at: Optional[float] = None

    @property
    def event_id(self) -> Optional[str]:
        return self._event_id

    def bind(self, event_id: str) -> None:
        """Point the cache at `event_id`, dropping any entry for another event."""
        if event_id != self._event_id:
            if self._event is not None:
                logger.debug("Event cache invalidated: %s → %s", self._event_id, event_id)
            self._event_id = event_id
            self._event = None
            self.fetched_at = None

    def get(self, event_id: str) -> Optional[EventRecord]:
        if event_id != self._event_id:
            return None
        return self._event

    def store(self, event: EventRecord) -> None:
        # A record for some other event is ignored; the slot belongs to the bound id.
        if event.id != self._event_id:
            return
        self._event = event
        self.fetched_at = self._clock()

    def invalidate(self) -> None:
        self._event = None
        self.fetched_at = None
