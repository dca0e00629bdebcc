# backend/edu_erp/services/auditing/__init__.py
"""
Auditing Services Package.

Provides the fail-soft audit trail for exam and grading events.
"""
from .audit_logger import AuditAction, AuditEntity, AuditLogger

__all__ = ["AuditAction", "AuditEntity", "AuditLogger"]
