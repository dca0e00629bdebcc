# backend/edu_erp/services/__init__.py
"""
Services package for the application.

This package contains the business logic services that sit between the
repositories and the API endpoints / background tasks.
"""

from .auditing import AuditLogger, AuditAction, AuditEntity
from .notification import EmailService, ExamNotificationType, NotificationService
from .visibility import VisibilityService
from .factory import (
    build_audit_logger,
    build_notification_service,
    build_visibility_service,
)

__all__ = [
    # Auditing
    "AuditLogger",
    "AuditAction",
    "AuditEntity",
    # Notifications
    "EmailService",
    "ExamNotificationType",
    "NotificationService",
    # Timetable visibility
    "VisibilityService",
    # Wiring
    "build_audit_logger",
    "build_notification_service",
    "build_visibility_service",
]
