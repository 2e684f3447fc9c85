"""
Health Metrics Tracker Backend — Custom Exception Hierarchy
=============================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages. They replace generic Python
       exceptions that would leak internal details to the client.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return the shared JSON error envelope with the correct HTTP status.
Who:   Raised by services and middleware; caught by global handlers.

Exception Hierarchy:
    TrackerError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    │   ├── InvalidStateError    → 400 (facility/indicator is inactive)
    │   ├── InvalidRangeError    → 400 (period end < start, or start in the future)
    │   └── InvalidValueError    → 400 (value fails data-type bounds)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (duplicate or referenced row)
    ├── DatabaseError            → 500 Internal Server Error
    └── RateLimitExceededError   → 429 Too Many Requests

All validation failures are raised before any write is flushed, so a
rejected request never leaves a partial row behind.
"""

from typing import Any, Dict, Optional


class TrackerError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(TrackerError):
    """
    Raised when client input fails a business rule.

    HTTP:    400 Bad Request

    Schema-level problems (missing fields, wrong types) are caught earlier by
    FastAPI's RequestValidationError; this class covers rules that need the
    database or the clock to evaluate.
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


class InvalidStateError(ValidationError):
    """The referenced facility or indicator exists but is inactive."""


class InvalidRangeError(ValidationError):
    """Period end precedes period start, or period start lies in the future."""


class InvalidValueError(ValidationError):
    """Value is null, negative, or outside the bounds of its data type."""


class NotFoundError(TrackerError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found

    SQLAlchemy returns None for missing records; services convert that into
    this exception so the handler can answer 404.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        lookup: str = "id",
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} not found with {lookup}: {resource_id}"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class ConflictError(TrackerError):
    """
    Raised when a write would violate a uniqueness or reference rule.

    HTTP:    409 Conflict
    When:    Duplicate facility/indicator code, duplicate
             (facility, indicator, period start) submission, or deleting a
             row that other rows still reference.
    """

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(TrackerError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. Details (SQL,
    constraint names) are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(TrackerError):
    """
    Raised when a client exceeds the per-address request rate limit.

    HTTP:    429 Too Many Requests
    Response includes a Retry-After header.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = "Rate limit exceeded. Please try again later."
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
