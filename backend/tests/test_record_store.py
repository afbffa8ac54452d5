"""
EventLens Backend — SQL Record Store and Circuit Breaker Tests
===============================================================

What:  SqlRecordStore against in-memory SQLite, with transport failures
       injected by patching the session execution step.

What we test:
    ✅ Found / absent lookups, ORM rows converted to records
    ✅ Duplicate marker ids resolve to the requested event's stall
    ✅ Transient errors are retried, then raised as RecordStoreUnavailableError
    ✅ Activity inserts are not retried
    ✅ Activity insert failures never open the lookup circuit
    ✅ Circuit breaker opens, fails fast, and recovers
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from eventlens.exceptions import CircuitBreakerOpenError, RecordStoreUnavailableError
from eventlens.models import Event, Stall, UserActivity
from eventlens.schemas.activity import SCAN_ACTIVITY, ActivityRecord
from eventlens.schemas.scan import OutcomeKind
from eventlens.services.analytics import AnalyticsSink
from eventlens.services.circuit_breaker import CircuitBreaker
from eventlens.services.record_store import SqlRecordStore
from eventlens.services.scan_session import ScanSessionManager


def _transport_error():
    return OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))


@pytest_asyncio.fixture
async def seeded(db_session_factory):
    now = datetime.now(timezone.utc)
    async with db_session_factory() as session:
        session.add_all(
            [
                Event(id="E1", name="Food Fest", start_time=now - timedelta(days=1), end_time=now + timedelta(days=1)),
                Event(id="E2", name="Book Fair", start_time=now, end_time=now + timedelta(days=2)),
                Stall(id="s-e2", event_id="E2", marker_id="SHARED", name="Books Galore"),
                Stall(id="s-e1", event_id="E1", marker_id="SHARED", name="Dosa Corner"),
                Stall(id="s-only", event_id="E1", marker_id="STALL_001", name="Chai Point", status="inactive"),
            ]
        )
        await session.commit()
    return db_session_factory


@pytest.fixture
def store(db_session_factory):
    return SqlRecordStore(
        session_factory=db_session_factory,
        circuit_breaker=CircuitBreaker(failure_threshold=3, recovery_timeout=30),
        timeout=2.0,
    )


class TestQueries:

    @pytest.mark.asyncio
    async def test_fetch_stall_by_marker(self, store, seeded):
        stall = await store.fetch_stall_by_marker("STALL_001")

        assert stall.id == "s-only"
        assert stall.event_id == "E1"
        assert stall.status == "inactive"
        assert stall.is_active is False

    @pytest.mark.asyncio
    async def test_missing_marker_returns_none(self, store, seeded):
        assert await store.fetch_stall_by_marker("INVALID_123", "E1") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event_id,expected", [("E1", "s-e1"), ("E2", "s-e2")])
    async def test_duplicate_marker_prefers_requested_event(self, store, seeded, event_id, expected):
        stall = await store.fetch_stall_by_marker("SHARED", event_id)
        assert stall.id == expected

    @pytest.mark.asyncio
    async def test_fetch_event(self, store, seeded):
        event = await store.fetch_event("E1")

        assert event.name == "Food Fest"
        assert event.end_time.tzinfo is not None
        assert event.has_ended(datetime.now(timezone.utc)) is False

    @pytest.mark.asyncio
    async def test_missing_event_returns_none(self, store, seeded):
        assert await store.fetch_event("NOPE") is None

    @pytest.mark.asyncio
    async def test_log_activity(self, store, db_session_factory):
        activity_id = await store.log_activity(
            ActivityRecord(
                activity_type=SCAN_ACTIVITY,
                marker_id="STALL_001",
                details={"outcome": "success", "elapsed_ms": 12.5},
            )
        )

        async with db_session_factory() as session:
            row = await session.get(UserActivity, activity_id)
        assert row.activity_type == SCAN_ACTIVITY
        assert row.details["outcome"] == "success"
        assert row.user_id is None

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_transient_error_retried_then_raised(self, store):
        store._execute = AsyncMock(side_effect=_transport_error())

        with pytest.raises(RecordStoreUnavailableError) as exc_info:
            await store.fetch_stall_by_marker("STALL_001")

        assert store._execute.await_count == 2
        assert exc_info.value.context["operation"] == "fetch_stall_by_marker"
        assert store.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_retry_recovers_from_single_failure(self, store, seeded):
        real_execute = store._execute
        calls = []

        async def flaky(query):
            calls.append(query)
            if len(calls) == 1:
                raise _transport_error()
            return await real_execute(query)

        store._execute = flaky
        event = await store.fetch_event("E1")

        assert event.id == "E1"
        assert store.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, store):
        store._execute = AsyncMock(side_effect=TimeoutError())

        with pytest.raises(RecordStoreUnavailableError):
            await store.fetch_event("E1")

    @pytest.mark.asyncio
    async def test_activity_insert_not_retried(self, store):
        store._execute = AsyncMock(side_effect=_transport_error())

        with pytest.raises(RecordStoreUnavailableError):
            await store.log_activity(ActivityRecord(activity_type="view"))

        assert store._execute.await_count == 1

    @pytest.mark.asyncio
    async def test_non_transport_errors_propagate(self, store):
        store._execute = AsyncMock(side_effect=ValueError("bad mapping"))

        with pytest.raises(ValueError):
            await store.fetch_event("E1")
        assert store.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_circuit_opens_and_fails_fast(self, store):
        store._execute = AsyncMock(side_effect=_transport_error())
        for _ in range(3):
            with pytest.raises(RecordStoreUnavailableError):
                await store.fetch_event("E1")
        calls_before = store._execute.await_count

        with pytest.raises(CircuitBreakerOpenError):
            await store.fetch_event("E1")

        assert store.circuit_breaker.state == "open"
        assert store._execute.await_count == calls_before

    @pytest.mark.asyncio
    async def test_analytics_failures_do_not_open_lookup_circuit(self, seeded):
        """Failing activity inserts must not turn the next scan into network_error."""
        store = SqlRecordStore(
            session_factory=seeded,
            circuit_breaker=CircuitBreaker(failure_threshold=3, recovery_timeout=30),
            analytics_breaker=CircuitBreaker(failure_threshold=3, recovery_timeout=30),
            timeout=2.0,
        )
        async with seeded() as session:
            await session.execute(text("DROP TABLE user_activity"))
            await session.commit()

        sink = AnalyticsSink(store.log_activity, maxsize=10)
        for _ in range(3):
            sink.submit(ActivityRecord(activity_type="view"))
        await sink.drain()

        assert sink.failed == 3
        assert store.analytics_breaker.state == "open"
        assert store.circuit_breaker.state == "closed"
        assert store.circuit_breaker.failure_count == 0

        manager = ScanSessionManager(store, sink, idle_timeout_seconds=600, cooldown_seconds=2.0)
        session = manager.create("E1")
        report = await session.handle_detection("SHARED")
        await sink.close(timeout=1.0)

        assert report.outcome is OutcomeKind.SUCCESS
        assert report.stall.id == "s-e1"

    @pytest.mark.asyncio
    async def test_analytics_success_keeps_lookup_failure_count(self, store, seeded):
        real_execute = store._execute
        store._execute = AsyncMock(side_effect=_transport_error())
        with pytest.raises(RecordStoreUnavailableError):
            await store.fetch_event("E1")

        store._execute = real_execute
        await store.log_activity(ActivityRecord(activity_type="view"))

        assert store.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_ping_reports_unreachable(self, store):
        store._execute = AsyncMock(side_effect=_transport_error())
        assert await store.ping() is False


class TestCircuitBreaker:

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute() is True

    def test_open_circuit_rejects_with_remaining_time(self, clock):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=30, clock=clock)
        cb.record_failure()
        clock.advance(10)

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert exc_info.value.recovery_time == 20

    def test_half_open_after_recovery_timeout(self, clock):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=30, clock=clock)
        cb.record_failure()
        clock.advance(30)

        assert cb.can_execute() is True
        assert cb.state == "half_open"

    def test_probe_success_closes(self, clock):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=30, clock=clock)
        cb.record_failure()
        clock.advance(30)
        cb.can_execute()

        cb.record_success()

        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_probe_failure_reopens(self, clock):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=30, clock=clock)
        cb.record_failure()
        clock.advance(30)
        cb.can_execute()

        cb.record_failure()

        assert cb.state == "open"
        with pytest.raises(CircuitBreakerOpenError):
            cb.can_execute()
