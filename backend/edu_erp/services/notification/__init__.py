# backend/edu_erp/services/notification/__init__.py

"""
Notification services: in-app notifications and templated e-mail delivery.
"""

from .email_service import EmailService, EmailConfig, EmailMessage
from .notification_service import (
    EXAM_TIMETABLE_ENTITY,
    ExamNotificationType,
    NotificationService,
)

__all__ = [
    # Email service
    "EmailService",
    "EmailConfig",
    "EmailMessage",
    # In-app notifications
    "EXAM_TIMETABLE_ENTITY",
    "ExamNotificationType",
    "NotificationService",
]
