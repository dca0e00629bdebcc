# edu_erp/schemas/__init__.py
"""Expose schema modules and primary Pydantic models for convenient imports."""

from . import audit, notifications, system, timetables

from .audit import AuditLogRead, AuditLogWithUserRead, AuditUserRead
from .notifications import (
    NotificationRead,
    NotificationListResponse,
    UnreadCountResponse,
    MarkAllReadResponse,
)
from .system import GenericResponse, HealthResponse
from .timetables import (
    PublishTimetableResponse,
    TimetableTaskResponse,
    TimetableUpdateRequest,
    TimetableNotifyResponse,
    AdmitCardGenerationResponse,
    AdmitCardListResponse,
    AdmitCardRead,
    TimetableAccessResponse,
)

__all__ = [
    "audit",
    "notifications",
    "system",
    "timetables",
    "AuditLogRead",
    "AuditLogWithUserRead",
    "AuditUserRead",
    "NotificationRead",
    "NotificationListResponse",
    "UnreadCountResponse",
    "MarkAllReadResponse",
    "GenericResponse",
    "HealthResponse",
    "PublishTimetableResponse",
    "TimetableTaskResponse",
    "TimetableUpdateRequest",
    "TimetableNotifyResponse",
    "AdmitCardGenerationResponse",
    "AdmitCardListResponse",
    "AdmitCardRead",
    "TimetableAccessResponse",
]
