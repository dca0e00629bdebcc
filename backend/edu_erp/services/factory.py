# backend/edu_erp/services/factory.py
"""Wires services to repositories sharing one AsyncSession."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..repositories import (
    AuditLogRepository,
    NotificationRepository,
    TimetableRepository,
    UserRepository,
)
from .auditing import AuditLogger
from .notification import EmailService, NotificationService
from .visibility import VisibilityService


def build_audit_logger(session: AsyncSession) -> AuditLogger:
    return AuditLogger(AuditLogRepository(session))


def build_notification_service(
    session: AsyncSession,
    email_service: Optional[EmailService] = None,
    settings: Optional[Settings] = None,
) -> NotificationService:
    return NotificationService(
        NotificationRepository(session),
        UserRepository(session),
        email_service=email_service,
        settings=settings or get_settings(),
    )


def build_visibility_service(
    session: AsyncSession,
    email_service: Optional[EmailService] = None,
    settings: Optional[Settings] = None,
) -> VisibilityService:
    return VisibilityService(
        TimetableRepository(session),
        UserRepository(session),
        build_notification_service(session, email_service, settings),
        build_audit_logger(session),
    )
