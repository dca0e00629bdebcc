# edu_erp/core/__init__.py

from ..config import get_settings
from .security import create_access_token, decode_access_token
from .exceptions import (
    AppError,
    TimetableNotFoundError,
    TimetableAlreadyPublishedError,
    TimetableNotPublishedError,
    NotificationNotFoundError,
    AccessDeniedError,
    PersistenceError,
)


__all__ = [
    "get_settings",
    "create_access_token",
    "decode_access_token",
    "AppError",
    "TimetableNotFoundError",
    "TimetableAlreadyPublishedError",
    "TimetableNotPublishedError",
    "NotificationNotFoundError",
    "AccessDeniedError",
    "PersistenceError",
]
