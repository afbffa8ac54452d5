"""
EventLens Backend — Record Store
=================================

What:  The query surface the scan flow depends on: "stall by marker id",
       "event by id", plus the activity insert used by the analytics sink.
How:   `RecordStore` is the abstract interface; `SqlRecordStore` implements
       it on the async SQLAlchemy tables with a per-call timeout, tenacity
       retries for transient transport errors, and a circuit breaker.
Who:   RecordStoreClient (lookups), AnalyticsSink (activity writes), health route.

Contract:
    - A missing row is a normal `None` return, never an exception.
    - A transport/availability failure raises RecordStoreUnavailableError
      (CircuitBreakerOpenError while the circuit is open).
    - Each call opens its own session, so concurrent lookups for one scan
      never share a session.
    - Activity inserts are not retried (analytics delivery is at-most-once).
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import case, select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from eventlens.config import settings
from eventlens.database import async_session_factory
from eventlens.exceptions import RecordStoreUnavailableError
from eventlens.models import Event, Stall, UserActivity
from eventlens.schemas.activity import ActivityRecord
from eventlens.schemas.scan import EventRecord, StallRecord
from eventlens.services.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean "the store could not be reached", as opposed to a bug in
# the query. asyncio.TimeoutError is TimeoutError (an OSError) on 3.11+.
TRANSIENT_ERRORS = (
    OperationalError,
    InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class RecordStore(ABC):
    """
    Abstract record store used by the scan flow.

    Implementations:
        - SqlRecordStore: async SQLAlchemy (PostgreSQL in production)
        - tests use an in-memory fake with call counters
    """

    @abstractmethod
    async def fetch_stall_by_marker(
        self, marker_id: str, event_id: Optional[str] = None
    ) -> Optional[StallRecord]:
        """
        Return the stall registered under `marker_id`, or None.

        Marker ids are unique per event only. When several stalls share the
        marker id, the one belonging to `event_id` (if given) is returned.

        Raises:
            RecordStoreUnavailableError: the store could not be reached.
        """
        ...

    @abstractmethod
    async def fetch_event(self, event_id: str) -> Optional[EventRecord]:
        """
        Return the event with id `event_id`, or None.

        Raises:
            RecordStoreUnavailableError: the store could not be reached.
        """
        ...

    @abstractmethod
    async def log_activity(self, record: ActivityRecord) -> str:
        """Insert one user_activity row and return its id."""
        ...


class SqlRecordStore(RecordStore):
    """
    RecordStore on the `events` / `stalls` / `user_activity` tables.

    Error Handling Chain:
        query fails with a transient error → tenacity retries (lookups only)
        → retries exhausted → circuit breaker failure recorded
        → RecordStoreUnavailableError raised to the caller
        → threshold reached → later calls fail instantly (circuit OPEN)

    Lookups and activity inserts use separate breakers, so failing
    analytics writes never turn a scan into network_error.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        timeout: Optional[float] = None,
        analytics_breaker: Optional[CircuitBreaker] = None,
    ):
        self._session_factory = session_factory or async_session_factory
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        # Activity inserts trip their own breaker; they never gate lookups.
        self.analytics_breaker = analytics_breaker or CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds

    # ── Queries ───────────────────────────────────────────────────────────

    async def fetch_stall_by_marker(
        self, marker_id: str, event_id: Optional[str] = None
    ) -> Optional[StallRecord]:
        async def query(session: AsyncSession) -> Optional[StallRecord]:
            stmt = select(Stall).where(Stall.marker_id == marker_id)
            if event_id is not None:
                stmt = stmt.order_by(case((Stall.event_id == event_id, 0), else_=1))
            result = await session.execute(stmt.limit(1))
            row = result.scalar_one_or_none()
            return StallRecord.model_validate(row) if row is not None else None

        return await self._call("fetch_stall_by_marker", query, self.circuit_breaker, retry_transient=True)

    async def fetch_event(self, event_id: str) -> Optional[EventRecord]:
        async def query(session: AsyncSession) -> Optional[EventRecord]:
            row = await session.get(Event, event_id)
            return EventRecord.model_validate(row) if row is not None else None

        return await self._call("fetch_event", query, self.circuit_breaker, retry_transient=True)

    async def log_activity(self, record: ActivityRecord) -> str:
        async def insert(session: AsyncSession) -> str:
            values = record.model_dump(exclude_none=True)
            row = UserActivity(**values)
            session.add(row)
            await session.commit()
            return row.id

        return await self._call("log_activity", insert, self.analytics_breaker, retry_transient=False)

    # ── Execution ─────────────────────────────────────────────────────────

    async def _call(
        self,
        operation: str,
        query: Callable[[AsyncSession], Awaitable[T]],
        breaker: CircuitBreaker,
        retry_transient: bool,
    ) -> T:
        # Raises CircuitBreakerOpenError before touching the pool.
        breaker.can_execute()

        try:
            if retry_transient:
                result = await self._execute_with_retry(query)
            else:
                result = await self._execute(query)
        except TRANSIENT_ERRORS as e:
            breaker.record_failure()
            logger.warning(
                "Record store %s failed (%s): %s",
                operation,
                type(e).__name__,
                str(e) or "no detail",
            )
            raise RecordStoreUnavailableError(
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e

        breaker.record_success()
        return result

    async def _execute(self, query: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            return await asyncio.wait_for(query(session), timeout=self.timeout)

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.store_retry_attempts),
        wait=wait_exponential_jitter(
            initial=settings.store_retry_min_wait,
            max=settings.store_retry_max_wait,
            jitter=settings.store_retry_min_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _execute_with_retry(self, query: Callable[[AsyncSession], Awaitable[T]]) -> T:
        return await self._execute(query)

    async def ping(self) -> bool:
        """Lightweight connectivity probe for the health endpoint."""
        async def query(session: AsyncSession) -> bool:
            await session.execute(select(1))
            return True

        try:
            return await self._execute(query)
        except TRANSIENT_ERRORS as e:
            logger.warning("Record store ping failed: %s", str(e))
            return False


record_store = SqlRecordStore()
