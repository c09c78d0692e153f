"""
BizzyLink Backend: Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for the error scenarios the API knows about.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) map them onto
       structured JSON error responses with the right HTTP status code.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    BizzyLinkError (base)
    ├── ValidationError            → 400 Bad Request
    ├── AuthenticationError        → 401 Unauthorized
    ├── PermissionDeniedError      → 403 Forbidden
    ├── NotFoundError              → 404 Not Found
    ├── ConflictError              → 409 Conflict
    ├── RateLimitExceededError     → 429 Too Many Requests
    ├── DatabaseError              → 500 Internal Server Error
    └── NotificationDeliveryError  → never reaches a client (webhook retries)
"""

from typing import Any, Dict, Optional


class BizzyLinkError(Exception):
    """
    Base exception for all BizzyLink application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info, returned as `details` by the handlers
                  that consider it safe
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(BizzyLinkError):
    """
    Raised when client input breaks a business rule.

    Schema-level problems (wrong types, missing fields) are still answered by
    FastAPI with 422; this one covers rules like "cannot vouch for yourself".
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


class AuthenticationError(BizzyLinkError):
    """Missing, expired or invalid credentials (401)."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(BizzyLinkError):
    """
    The caller is authenticated but may not perform the action (403).

    Also used for banned/suspended accounts and locked forum threads.
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(BizzyLinkError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services turn that None into
    this exception so routes never deal with it.
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


class ConflictError(BizzyLinkError):
    """Unique value already taken: username, email, slug, Minecraft UUID (409)."""

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(BizzyLinkError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Details are logged
    server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(BizzyLinkError):
    """
    Raised when a client must wait before trying again.

    Covers both the per-IP request limit and the per-account login lockout.
    The handler adds a Retry-After header.
    """

    def __init__(
        self,
        retry_after: int = 60,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = message or (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class NotificationDeliveryError(BizzyLinkError):
    """
    An outbound link/unlink webhook could not be delivered.

    Raised inside the notifier so tenacity can retry; after the last attempt
    the notifier logs it and moves on.
    """

    def __init__(
        self,
        message: str = "Webhook delivery failed",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code
