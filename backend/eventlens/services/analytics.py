"""
EventLens Backend — Fire-and-Forget Analytics Sink
===================================================

What:  Accepts activity records without blocking and writes them to the
       record store in the background.
How:   submit() does `put_nowait` on a bounded asyncio.Queue; one worker
       task drains the queue and calls the writer for each record.

Delivery guarantees:
    - At most once: a record is written once or not at all (no retries).
    - Best effort: a full queue drops the record; a writer failure is
      logged and the record is discarded.
    - Non-blocking: submit() never awaits and never raises, so a broken
      analytics path cannot change a scan's outcome or delay the next scan.

The worker starts lazily on the first submit from inside a running loop
(and is restarted if the loop it ran on has gone away, as happens between
test event loops), so the sink works with or without the app lifespan.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from eventlens.config import settings
from eventlens.schemas.activity import ActivityRecord
from eventlens.services.record_store import record_store

logger = logging.getLogger(__name__)

ActivityWriter = Callable[[ActivityRecord], Awaitable[Any]]


class AnalyticsSink:
    def __init__(self, writer: ActivityWriter, maxsize: int = 1000):
        self._writer = writer
        self._maxsize = maxsize
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.delivered = 0
        self.dropped = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, record: ActivityRecord) -> bool:
        """
        Hand a record to the background worker.

        Returns:
            True if queued, False if dropped (queue full or no running loop).
        """
        try:
            queue = self._ensure_worker()
            queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Analytics queue full (%d pending), dropping %s record",
                self._maxsize,
                record.activity_type,
            )
            return False
        except RuntimeError:
            # No running event loop: nothing could ever drain the queue.
            self.dropped += 1
            logger.warning("No event loop for analytics, dropping %s record", record.activity_type)
            return False
        return True

    def start(self) -> None:
        """Start the worker on the running loop (called from the app lifespan)."""
        self._ensure_worker()
        logger.info("Analytics sink started (queue size %d)", self._maxsize)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait until every queued record has been handled, up to `timeout`."""
        if self._queue is None or self._worker is None or self._worker.done():
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Analytics drain timed out with %d records pending", self.pending)

    async def close(self, timeout: float = 5.0) -> None:
        """Flush what can be flushed within `timeout`, then stop the worker."""
        await self.drain(timeout)
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None
        logger.info(
            "Analytics sink closed (delivered=%d, dropped=%d, failed=%d)",
            self.delivered,
            self.dropped,
            self.failed,
        )

    def _ensure_worker(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()
        if (
            self._worker is None
            or self._worker.done()
            or self._worker.get_loop() is not loop
        ):
            self._queue = asyncio.Queue(maxsize=self._maxsize)
            self._worker = loop.create_task(self._run(self._queue), name="analytics-sink")
        return self._queue

    async def _run(self, queue: asyncio.Queue) -> None:
        while True:
            record = await queue.get()
            try:
                await self._writer(record)
                self.delivered += 1
            except Exception as e:
                self.failed += 1
                logger.warning(
                    "Analytics delivery failed for %s (%s): %s",
                    record.activity_type,
                    type(e).__name__,
                    e,
                )
            finally:
                queue.task_done()


analytics_sink = AnalyticsSink(record_store.log_activity, maxsize=settings.analytics_queue_size)
