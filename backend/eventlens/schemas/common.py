"""
EventLens Backend — Shared Response Schemas
============================================

What:  Error and health response shapes used by every router.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "stall with ID 'abc' was not found",
            "details": {"resource": "stall"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Record store connectivity: connected, disconnected")
    record_store_circuit: str = Field(description="Circuit breaker state: closed, open, half_open")
    analytics_pending: int = Field(description="Analytics records waiting for delivery")
    active_sessions: int = Field(description="Open AR scan sessions")
    uptime_seconds: float = Field(description="Seconds since service started")
