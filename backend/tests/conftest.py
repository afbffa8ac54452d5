"""
EventLens Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment overrides are applied before any `eventlens` import so
       module-level singletons (settings, engine) pick them up.

Fixture Hierarchy (all function-scoped):
    ├── clock:               manually advanced monotonic clock
    ├── make_stall / make_event: record factories with sensible defaults
    ├── fake_store:          in-memory RecordStore with call counters and
    │                        failure switches
    ├── sink:                AnalyticsSink writing into fake_store
    ├── manager:             ScanSessionManager over fake_store + sink
    ├── db_session_factory:  in-memory SQLite (aiosqlite) with all tables
    ├── db_session:          one session from that factory
    └── test_client:         HTTPX AsyncClient with dependency overrides
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

# Must run before eventlens is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["STORE_RETRY_MIN_WAIT"] = "0"
os.environ["STORE_RETRY_MAX_WAIT"] = "0.01"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from eventlens.database import Base
from eventlens.exceptions import RecordStoreUnavailableError
from eventlens.schemas.activity import ActivityRecord
from eventlens.schemas.scan import EventRecord, StallRecord
from eventlens.services.analytics import AnalyticsSink
from eventlens.services.record_store import RecordStore, SqlRecordStore
from eventlens.services.scan_session import ScanSessionManager


# ══════════════════════════════════════════════════════════════════════════
# Test doubles
# ══════════════════════════════════════════════════════════════════════════


class FakeClock:
    """Monotonic clock that only moves when a test advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRecordStore(RecordStore):
    """
    In-memory record store.

    Counters let tests assert how many fetches a scan issued; the fail_*
    switches simulate an unreachable store; `delay` keeps fetches in flight.
    """

    def __init__(self):
        self.stalls: List[StallRecord] = []
        self.events: Dict[str, EventRecord] = {}
        self.activities: List[ActivityRecord] = []
        self.stall_calls = 0
        self.event_calls = 0
        self.fail_stalls = False
        self.fail_events = False
        self.fail_activity = False
        self.delay = 0.0

    def add_stall(self, stall: StallRecord) -> StallRecord:
        self.stalls.append(stall)
        return stall

    def add_event(self, event: EventRecord) -> EventRecord:
        self.events[event.id] = event
        return event

    async def fetch_stall_by_marker(
        self, marker_id: str, event_id: Optional[str] = None
    ) -> Optional[StallRecord]:
        self.stall_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_stalls:
            raise RecordStoreUnavailableError(context={"operation": "fetch_stall_by_marker"})
        matches = [s for s in self.stalls if s.marker_id == marker_id]
        matches.sort(key=lambda s: s.event_id != event_id)
        return matches[0] if matches else None

    async def fetch_event(self, event_id: str) -> Optional[EventRecord]:
        self.event_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_events:
            raise RecordStoreUnavailableError(context={"operation": "fetch_event"})
        return self.events.get(event_id)

    async def log_activity(self, record: ActivityRecord) -> str:
        if self.fail_activity:
            raise RecordStoreUnavailableError(context={"operation": "log_activity"})
        self.activities.append(record)
        return f"activity-{len(self.activities)}"

    def activities_of(self, activity_type: str) -> List[ActivityRecord]:
        return [a for a in self.activities if a.activity_type == activity_type]


# ══════════════════════════════════════════════════════════════════════════
# Record factories
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def make_event():
    """Factory for EventRecord; by default an ongoing event ending tomorrow."""

    def _make(event_id: str = "E1", **overrides) -> EventRecord:
        now = datetime.now(timezone.utc)
        values = {
            "id": event_id,
            "name": f"Event {event_id}",
            "start_time": now - timedelta(days=1),
            "end_time": now + timedelta(days=1),
            "status": "ongoing",
        }
        values.update(overrides)
        return EventRecord(**values)

    return _make


@pytest.fixture
def make_stall():
    """Factory for StallRecord; by default an active stall of event E1."""

    def _make(marker_id: str = "STALL_001", event_id: str = "E1", **overrides) -> StallRecord:
        values = {
            "id": f"stall-{event_id}-{marker_id}".lower(),
            "event_id": event_id,
            "marker_id": marker_id,
            "name": f"Stall {marker_id}",
            "category": "food",
            "status": "active",
        }
        values.update(overrides)
        return StallRecord(**values)

    return _make


# ══════════════════════════════════════════════════════════════════════════
# Scan flow fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_store():
    return FakeRecordStore()


@pytest_asyncio.fixture
async def sink(fake_store):
    sink = AnalyticsSink(fake_store.log_activity, maxsize=100)
    yield sink
    await sink.close(timeout=1.0)


@pytest.fixture
def manager(fake_store, sink, clock):
    return ScanSessionManager(
        fake_store,
        sink,
        idle_timeout_seconds=600,
        cooldown_seconds=2.0,
        clock=clock,
    )


# ══════════════════════════════════════════════════════════════════════════
# Database fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def db_session_factory():
    """
    In-memory SQLite with every table created.

    StaticPool keeps one connection, so all sessions see the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_client(db_session_factory, manager, sink):
    """
    HTTPX AsyncClient over ASGITransport.

    Overrides:
        get_db_session      → sessions on the in-memory SQLite database
        get_session_manager → manager over the fake record store
        get_record_store    → SqlRecordStore on the same database (health)
        get_analytics_sink  → the test sink
    """
    from eventlens.database import get_db_session
    from eventlens.main import app
    from eventlens.routes.health import get_analytics_sink, get_record_store
    from eventlens.routes.sessions import get_session_manager

    async def override_db_session():
        async with db_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    sql_store = SqlRecordStore(session_factory=db_session_factory)

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_session_manager] = lambda: manager
    app.dependency_overrides[get_record_store] = lambda: sql_store
    app.dependency_overrides[get_analytics_sink] = lambda: sink

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
