# edu_erp/core/exceptions.py
"""Application-level exceptions used across services.

Each exception carries a machine friendly ``code`` and a suggested HTTP
``status_code`` so route handlers and the global exception handler can
branch on the kind of failure instead of matching message strings.
"""
from __future__ import annotations

from typing import Optional, Any, Dict, List
from datetime import datetime, timezone


class AppError(Exception):
    """Base application exception with structured metadata.

    Attributes
    ----------
    message
        Human readable message.
    code
        Machine friendly error code (snake_case).
    status_code
        Suggested HTTP status code for API responses.
    details
        Arbitrary extra data useful for debugging or UX.
    timestamp
        UTC ISO timestamp when the exception was created.
    cause
        Optional underlying exception instance.
    context
        Optional lightweight context dict (ids, counts).
    """

    code: str = "app_error"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An application error occurred",
        *,
        details: Optional[Any] = None,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Return a serializable representation suitable for API responses.

        Note: Do not include large or sensitive objects inside ``details``
        when sending to untrusted clients.
        """
        return {
            "error": {
                "type": self.__class__.__name__,
                "code": self.code,
                "message": self.message,
                "status_code": self.status_code,
                "details": self.details,
                "context": self.context,
                "timestamp": self.timestamp,
            }
        }


class TimetableNotFoundError(AppError):
    """Raised when an exam timetable lookup returns nothing."""

    code = "timetable_not_found"
    status_code = 404

    def __init__(
        self,
        timetable_id: Optional[Any] = None,
        message: str = "Timetable not found",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if timetable_id is not None:
            self.context.setdefault("timetable_id", str(timetable_id))


class TimetableAlreadyPublishedError(AppError):
    """Raised when publishing a timetable whose status is already PUBLISHED."""

    code = "timetable_already_published"
    status_code = 409

    def __init__(
        self,
        timetable_id: Optional[Any] = None,
        message: str = "Timetable is already published",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if timetable_id is not None:
            self.context.setdefault("timetable_id", str(timetable_id))


class TimetableNotPublishedError(AppError):
    """Raised when an operation needs a PUBLISHED timetable."""

    code = "timetable_not_published"
    status_code = 409

    def __init__(
        self,
        timetable_id: Optional[Any] = None,
        message: str = "Timetable must be published before generating admit cards",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if timetable_id is not None:
            self.context.setdefault("timetable_id", str(timetable_id))


class NotificationNotFoundError(AppError):
    code = "notification_not_found"
    status_code = 404

    def __init__(
        self,
        notification_id: Optional[Any] = None,
        message: str = "Notification not found",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if notification_id is not None:
            self.context.setdefault("notification_id", str(notification_id))


class AccessDeniedError(AppError):
    """Raised when the current user may not perform an action.

    Only an opaque user id is kept in the context.
    """

    code = "access_denied"
    status_code = 403

    def __init__(
        self,
        user_id: Optional[Any] = None,
        message: str = "Access denied",
        *,
        required_roles: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if user_id is not None:
            self.context.setdefault("user_id", str(user_id))
        if required_roles:
            self.context.setdefault("required_roles", required_roles)


class PersistenceError(AppError):
    """Raised by repositories when the database rejects an operation."""

    code = "persistence_error"
    status_code = 500

    def __init__(
        self,
        message: str = "Database operation failed",
        *,
        operation: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if operation:
            self.context.setdefault("operation", operation)


__all__ = [
    "AppError",
    "TimetableNotFoundError",
    "TimetableAlreadyPublishedError",
    "TimetableNotPublishedError",
    "NotificationNotFoundError",
    "AccessDeniedError",
    "PersistenceError",
]
