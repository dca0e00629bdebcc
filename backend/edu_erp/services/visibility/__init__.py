# backend/edu_erp/services/visibility/__init__.py
"""
Exam timetable visibility: publish, update, cancel, admit cards and access.
"""
from .visibility_service import VisibilityService, format_display_date

__all__ = ["VisibilityService", "format_display_date"]
