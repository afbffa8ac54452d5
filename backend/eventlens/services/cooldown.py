"""
EventLens Backend — Scan Cooldown
==================================

What:  Suppresses re-processing of a marker detected again within the
       cooldown window (2s by default).
How:   marker id → monotonic time its last processing started. A detection
       is admitted when the marker has no entry or the entry is older than
       the window; admission records the new time atomically.

Detectors fire many times per second while a marker is in view, so without
this gate one physical scan would trigger a burst of lookups.

Stale entries are pruned lazily on admission once the map grows past
`prune_after` entries.
"""

import threading
import time
from typing import Callable, Dict


class CooldownTracker:
    def __init__(
        self,
        window_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        prune_after: int = 256,
    ):
        self.window_seconds = window_seconds
        self._clock = clock
        self._prune_after = prune_after
        self._last_processed: Dict[str, float] = {}
        self._lock = threading.Lock()

    def try_acquire(self, marker_id: str) -> bool:
        """
        Admit `marker_id` for processing if it is outside its cooldown window.

        Returns:
            True if admitted (the marker's window restarts now), False if
            the detection should be ignored.
        """
        now = self._clock()
        with self._lock:
            last = self._last_processed.get(marker_id)
            if last is not None and now - last < self.window_seconds:
                return False
            self._last_processed[marker_id] = now
            if len(self._last_processed) > self._prune_after:
                self._prune(now)
            return True

    def _prune(self, now: float) -> None:
        expired = [
            marker for marker, ts in self._last_processed.items()
            if now - ts >= self.window_seconds
        ]
        for marker in expired:
            del self._last_processed[marker]

    def clear(self) -> None:
        with self._lock:
            self._last_processed.clear()

    def __len__(self) -> int:
        return len(self._last_processed)
