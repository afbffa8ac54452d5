"""
EventLens Backend — Event Cache and Cooldown Tests
===================================================

What:  The two per-session state holders of the scan flow.
"""

import threading

from eventlens.services.cooldown import CooldownTracker
from eventlens.services.event_cache import EventCache


class TestEventCache:

    def test_empty_cache_misses(self):
        cache = EventCache("E1")
        assert cache.get("E1") is None
        assert cache.fetched_at is None

    def test_store_then_get(self, make_event, clock):
        """A stored event is returned with its fetch time."""
        cache = EventCache("E1", clock=clock)
        event = make_event("E1")
        cache.store(event)

        assert cache.get("E1") == event
        assert cache.fetched_at == clock.now

    def test_get_for_other_event_misses(self, make_event):
        cache = EventCache("E1")
        cache.store(make_event("E1"))
        assert cache.get("E2") is None

    def test_store_ignores_event_of_other_id(self, make_event):
        """The single slot only ever holds the bound event."""
        cache = EventCache("E1")
        cache.store(make_event("E2"))
        assert cache.get("E1") is None
        assert cache.get("E2") is None

    def test_bind_to_new_event_invalidates(self, make_event):
        cache = EventCache("E1")
        cache.store(make_event("E1"))

        cache.bind("E2")

        assert cache.event_id == "E2"
        assert cache.get("E1") is None
        assert cache.fetched_at is None

    def test_rebind_same_event_keeps_entry(self, make_event):
        cache = EventCache("E1")
        event = make_event("E1")
        cache.store(event)

        cache.bind("E1")

        assert cache.get("E1") == event

    def test_no_time_based_expiry(self, make_event, clock):
        """Entries stay valid for the life of the session."""
        cache = EventCache("E1", clock=clock)
        event = make_event("E1")
        cache.store(event)
        clock.advance(24 * 3600)
        assert cache.get("E1") == event

    def test_invalidate(self, make_event):
        cache = EventCache("E1")
        cache.store(make_event("E1"))
        cache.invalidate()
        assert cache.get("E1") is None


class TestCooldownTracker:

    def test_first_detection_admitted(self, clock):
        tracker = CooldownTracker(window_seconds=2.0, clock=clock)
        assert tracker.try_acquire("STALL_001") is True

    def test_repeat_inside_window_suppressed(self, clock):
        tracker = CooldownTracker(window_seconds=2.0, clock=clock)
        tracker.try_acquire("STALL_001")
        clock.advance(1.99)
        assert tracker.try_acquire("STALL_001") is False

    def test_repeat_after_window_admitted(self, clock):
        tracker = CooldownTracker(window_seconds=2.0, clock=clock)
        tracker.try_acquire("STALL_001")
        clock.advance(2.0)
        assert tracker.try_acquire("STALL_001") is True

    def test_suppressed_detection_does_not_extend_window(self, clock):
        """Only admitted detections restart the window."""
        tracker = CooldownTracker(window_seconds=2.0, clock=clock)
        tracker.try_acquire("M")
        clock.advance(1.5)
        assert tracker.try_acquire("M") is False
        clock.advance(0.5)
        assert tracker.try_acquire("M") is True

    def test_markers_are_independent(self, clock):
        tracker = CooldownTracker(window_seconds=2.0, clock=clock)
        assert tracker.try_acquire("A") is True
        assert tracker.try_acquire("B") is True
        assert tracker.try_acquire("A") is False

    def test_lazy_prune_drops_expired_entries(self, clock):
        tracker = CooldownTracker(window_seconds=2.0, clock=clock, prune_after=3)
        for marker in ("A", "B", "C"):
            tracker.try_acquire(marker)
        clock.advance(5)
        tracker.try_acquire("D")

        assert len(tracker) == 1

    def test_clear(self, clock):
        tracker = CooldownTracker(window_seconds=2.0, clock=clock)
        tracker.try_acquire("A")
        tracker.clear()
        assert tracker.try_acquire("A") is True

    def test_concurrent_detections_admit_each_marker_once(self):
        """Threads racing on the same markers: exactly one admission per marker."""
        tracker = CooldownTracker(window_seconds=60)
        markers = [f"M{i}" for i in range(50)]
        admitted = []
        lock = threading.Lock()

        def worker():
            for marker in markers:
                if tracker.try_acquire(marker):
                    with lock:
                        admitted.append(marker)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(admitted) == sorted(markers)
