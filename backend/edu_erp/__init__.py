# backend/edu_erp/__init__.py

"""School ERP backend: exam timetable visibility, notifications and audit trail."""

# Core
from .core import (
    AppError,
    TimetableNotFoundError,
    TimetableAlreadyPublishedError,
    TimetableNotPublishedError,
    NotificationNotFoundError,
    AccessDeniedError,
    PersistenceError,
)

__version__ = "1.0.0"

__all__ = [
    "AppError",
    "TimetableNotFoundError",
    "TimetableAlreadyPublishedError",
    "TimetableNotPublishedError",
    "NotificationNotFoundError",
    "AccessDeniedError",
    "PersistenceError",
    "__version__",
]
