"""
Snipply Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions, one per HTTP failure class.
How:   Services raise these; global handlers registered in main.py turn them
       into JSON error responses. Each exception carries a user-facing
       message and a context dict that is logged, and returned only for
       client errors.

Exception Hierarchy:
    SnipplyError (base)
    ├── ValidationError            → 400 Bad Request
    │   └── DuplicateRecordError   → 400 Bad Request (unique constraint)
    ├── AuthenticationError        → 401 Unauthorized
    ├── PermissionDeniedError      → 403 Forbidden
    ├── NotFoundError              → 404 Not Found
    └── DatabaseError              → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class SnipplyError(Exception):
    """
    Base exception for all Snipply application errors.

    Attributes:
        message:  User-facing error description (safe to return)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SnipplyError):
    """
    Raised when client input fails a business rule.

    Examples: duplicate username, following yourself, liking twice,
    an unknown rank value.
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


class DuplicateRecordError(ValidationError):
    """A unique constraint rejected an insert (e.g. a concurrent registration)."""

    def __init__(
        self,
        message: str = "Record already exists",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field=field, context=context)


class AuthenticationError(SnipplyError):
    """
    Raised when a request needs a session and has none, or when credentials
    do not match.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(SnipplyError):
    """
    Raised when the session user may not perform the action: editing someone
    else's snippet, reading a private snippet, or calling an admin endpoint
    without the admin rank.
    """

    def __init__(
        self,
        message: str = "Access denied",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SnipplyError):
    """
    Raised when a requested resource does not exist.

    Storage returns None for missing rows; services convert that into this
    exception so the handler can answer 404.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(SnipplyError):
    """
    Raised when a database operation fails unexpectedly.

    The response message is always generic; the context is logged only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
