"""
EventLens Backend — Circuit Breaker
====================================

What:  Fails record-store calls fast while the store is known to be down.
How:   Counts consecutive failures; at the threshold the circuit OPENs and
       every call raises CircuitBreakerOpenError until the recovery timeout
       elapses, then one probe call is let through (HALF_OPEN).
Who:   Owned by SqlRecordStore; its state is reported by GET /health.

State Machine:
    CLOSED ──(failures ≥ threshold)──▶ OPEN ──(recovery timeout)──▶ HALF_OPEN
      ▲                                  ▲                              │
      └──────────(probe succeeds)────────┼──────────────────────────────┤
                                         └──────(probe fails)───────────┘

A scan that hits an open circuit resolves to NetworkError(retryable=True)
immediately instead of waiting out the store timeout and retries.

Concurrency:
    State lives in plain attributes. All callers run on the one event loop
    and never await between reading and writing the state.
"""

import logging
import time
from typing import Callable, Optional

from eventlens.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            failure_threshold: Consecutive failures before opening the circuit
            recovery_timeout: Seconds to wait before letting a probe through
            clock: Monotonic time source (injected by tests)
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check whether a call may proceed.

        Returns:
            True when CLOSED, HALF_OPEN, or OPEN with the recovery timeout elapsed.

        Raises:
            CircuitBreakerOpenError while OPEN inside the recovery period.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = self._clock() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Record store circuit transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Record store circuit transitioning to CLOSED (store recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self.state == self.HALF_OPEN:
            logger.warning("Record store circuit returning to OPEN (probe failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold and self.state != self.OPEN:
            logger.warning(
                "Record store circuit OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN
