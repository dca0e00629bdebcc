# edu_erp/models/__init__.py

from .base import Base
from .academic import (
    School,
    AcademicYear,
    AcademicUnit,
    Student,
    StudentStatus,
    Teacher,
    Guardian,
    StudentGuardian,
    ClassTeacher,
    Subject,
)
from .exams import (
    ExamTimetable,
    ExamTimetableSlot,
    ExamTimetableNotification,
    AdmitCard,
    TimetableStatus,
    SlotType,
)
from .users import User, UserRole, Notification, ADMIN_ROLES
from .audit_logs import AuditLog

__all__ = [
    "Base",
    # Academic models
    "School",
    "AcademicYear",
    "AcademicUnit",
    "Student",
    "StudentStatus",
    "Teacher",
    "Guardian",
    "StudentGuardian",
    "ClassTeacher",
    "Subject",
    # Exam models
    "ExamTimetable",
    "ExamTimetableSlot",
    "ExamTimetableNotification",
    "AdmitCard",
    "TimetableStatus",
    "SlotType",
    # User models
    "User",
    "UserRole",
    "Notification",
    "ADMIN_ROLES",
    # Audit
    "AuditLog",
]
