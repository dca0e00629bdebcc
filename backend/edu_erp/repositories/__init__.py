# edu_erp/repositories/__init__.py

from .base import BaseRepository
from .audit_repository import AuditLogRepository
from .notification_repository import NotificationRepository
from .timetable_repository import TimetableRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "AuditLogRepository",
    "NotificationRepository",
    "TimetableRepository",
    "UserRepository",
]
