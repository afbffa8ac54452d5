"""
EventLens Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for infrastructure and API errors.
How:   Each exception carries a user-safe message and an optional context dict.
       Global exception handlers (registered in main.py) turn them into
       structured JSON error responses.
Who:   Raised by services and the record store; caught by global handlers.

Exception Hierarchy:
    EventLensError (base)
    ├── ValidationError                 → 400 Bad Request
    ├── NotFoundError                   → 404 Not Found
    │   └── SessionNotFoundError        → 404 Not Found
    ├── ConflictError                   → 409 Conflict
    ├── RecordStoreUnavailableError     → 503 Service Unavailable (retryable)
    │   └── CircuitBreakerOpenError     → 503 Service Unavailable
    └── DatabaseError                   → 500 Internal Server Error

Scan outcomes (marker not found, wrong event, ...) are NOT exceptions. They
are returned as `ScanOutcome` values by the validation pipeline. The only
exception the scan path looks at is RecordStoreUnavailableError, which the
record store client captures and hands to the pipeline as data.
"""

from typing import Any, Dict, Optional


class EventLensError(Exception):
    """
    Base exception for all EventLens application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, not always returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(EventLensError):
    """
    Raised when client input fails a business rule.

    When:    end_time before start_time, empty update payload, blank search query.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(EventLensError):
    """
    Raised when a requested record does not exist.

    The record store returns None for missing rows; the catalog services
    convert that into NotFoundError so routes can answer 404.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class SessionNotFoundError(NotFoundError):
    """Raised when a scan session id is unknown, ended, or expired."""

    def __init__(self, session_id: str):
        super().__init__(resource="scan session", resource_id=session_id)
        self.session_id = session_id


class ConflictError(EventLensError):
    """
    Raised when a write would break a uniqueness rule.

    When:    A stall is created/updated with a marker id already used by
             another stall of the same event.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The request conflicts with an existing record",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RecordStoreUnavailableError(EventLensError):
    """
    Raised when the record store cannot be reached.

    What:    Transport or availability failure (connection refused, timeout,
             driver error) after the configured retries.
    HTTP:    503 Service Unavailable

    This is distinct from absence: a missing row is a normal `None` return.
    The scan pipeline maps this error to NetworkError(retryable=True).
    """

    retryable = True

    def __init__(
        self,
        message: str = "The record store is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(RecordStoreUnavailableError):
    """
    Raised when the record store circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for M seconds)
        → After M seconds → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 30,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "The record store is temporarily unavailable due to repeated failures. "
            f"Lookups will resume in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, retry_after=recovery_time, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(EventLensError):
    """
    Raised when a catalog database operation fails unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. Details
        (statement, constraint name) are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
