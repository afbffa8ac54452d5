"""
EventLens Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Probes the record store, reports the circuit breaker state, pending
       analytics records and open scan sessions.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    - healthy:   record store reachable, circuit closed
    - degraded:  record store reachable but the circuit is not closed
                 (recent failures; scans may answer network_error)
    - unhealthy: record store unreachable
"""

import logging
import time

from fastapi import APIRouter, Depends

from eventlens import __version__
from eventlens.schemas.common import HealthResponse
from eventlens.services.analytics import AnalyticsSink, analytics_sink
from eventlens.services.record_store import SqlRecordStore, record_store
from eventlens.services.scan_session import ScanSessionManager
from eventlens.routes.sessions import get_session_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


def get_record_store() -> SqlRecordStore:
    return record_store


def get_analytics_sink() -> AnalyticsSink:
    return analytics_sink


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    store: SqlRecordStore = Depends(get_record_store),
    sink: AnalyticsSink = Depends(get_analytics_sink),
    manager: ScanSessionManager = Depends(get_session_manager),
) -> HealthResponse:
    """
    Lightweight checks only: SELECT 1 against the record store (bypassing
    the circuit breaker, so a recovered store shows up immediately) and
    in-process counters.
    """
    overall = "healthy"
    db_status = "connected"

    if not await store.ping():
        db_status = "disconnected"
        overall = "unhealthy"

    circuit_state = store.circuit_breaker.state
    if circuit_state != "closed" and overall == "healthy":
        overall = "degraded"
        logger.warning("Health check: record store circuit is %s", circuit_state)

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        record_store_circuit=circuit_state,
        analytics_pending=sink.pending,
        active_sessions=manager.active_count,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
