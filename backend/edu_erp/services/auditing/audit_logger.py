# backend/edu_erp/services/auditing/audit_logger.py
"""
Append-only audit trail.

Writes are fail-soft: an audit failure is logged and counted but never
breaks the business operation that triggered it.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from ...metrics import record_swallowed_audit_failure
from ...models import AuditLog
from ...repositories import AuditLogRepository

logger = logging.getLogger(__name__)


class AuditAction:
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    PUBLISH = "PUBLISH"
    CANCEL = "CANCEL"
    GENERATE = "GENERATE"


class AuditEntity:
    EXAM_TIMETABLE = "EXAM_TIMETABLE"
    MARKS = "MARKS"
    EXAM_ATTENDANCE = "EXAM_ATTENDANCE"
    REPORT_CARD = "REPORT_CARD"


class AuditLogger:
    """Creates and reads audit log entries through an injected repository."""

    def __init__(self, repository: AuditLogRepository):
        self.repository = repository

    async def log(
        self,
        school_id: UUID,
        entity_type: str,
        entity_id: Any,
        action: str,
        user_id: Optional[UUID],
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Record one audit entry and commit it.

        Returns the stored entry, or None when the write failed. Never raises.
        """
        try:
            logger.debug(
                f"Logging audit: user={user_id}, action='{action}', "
                f"entity='{entity_type}:{entity_id}'"
            )
            entry = AuditLog(
                school_id=school_id,
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                user_id=user_id,
                old_value=old_value,
                new_value=new_value,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            await self.repository.add(entry)
            await self.repository.commit()
            return entry
        except Exception as e:
            try:
                await self.repository.rollback()
            except Exception as rollback_error:
                logger.error(f"Audit rollback failed: {rollback_error}")
            logger.error(f"Failed to log audit activity: {e}", exc_info=True)
            record_swallowed_audit_failure("log")
            return None

    # ---- Typed wrappers ----

    async def log_timetable_created(
        self,
        school_id: UUID,
        timetable_id: UUID,
        user_id: UUID,
        timetable_data: Dict[str, Any],
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.EXAM_TIMETABLE,
            timetable_id,
            AuditAction.CREATE,
            user_id,
            new_value=timetable_data,
        )

    async def log_timetable_updated(
        self,
        school_id: UUID,
        timetable_id: UUID,
        user_id: UUID,
        old_data: Optional[Dict[str, Any]],
        new_data: Optional[Dict[str, Any]],
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.EXAM_TIMETABLE,
            timetable_id,
            AuditAction.UPDATE,
            user_id,
            old_value=old_data,
            new_value=new_data,
        )

    async def log_timetable_published(
        self, school_id: UUID, timetable_id: UUID, user_id: UUID
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.EXAM_TIMETABLE,
            timetable_id,
            AuditAction.PUBLISH,
            user_id,
        )

    async def log_timetable_cancelled(
        self,
        school_id: UUID,
        timetable_id: UUID,
        user_id: UUID,
        previous_status: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.EXAM_TIMETABLE,
            timetable_id,
            AuditAction.CANCEL,
            user_id,
            old_value={"status": previous_status} if previous_status else None,
        )

    async def log_marks_entry(
        self,
        school_id: UUID,
        mark_id: Any,
        user_id: UUID,
        marks_data: Dict[str, Any],
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.MARKS,
            mark_id,
            AuditAction.CREATE,
            user_id,
            new_value=marks_data,
        )

    async def log_marks_update(
        self,
        school_id: UUID,
        mark_id: Any,
        user_id: UUID,
        old_marks: Dict[str, Any],
        new_marks: Dict[str, Any],
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.MARKS,
            mark_id,
            AuditAction.UPDATE,
            user_id,
            old_value=old_marks,
            new_value=new_marks,
        )

    async def log_attendance_marked(
        self,
        school_id: UUID,
        attendance_id: Any,
        user_id: UUID,
        attendance_data: Dict[str, Any],
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.EXAM_ATTENDANCE,
            attendance_id,
            AuditAction.CREATE,
            user_id,
            new_value=attendance_data,
        )

    async def log_report_card_generated(
        self,
        school_id: UUID,
        report_card_id: Any,
        user_id: UUID,
        report_data: Dict[str, Any],
    ) -> Optional[AuditLog]:
        return await self.log(
            school_id,
            AuditEntity.REPORT_CARD,
            report_card_id,
            AuditAction.GENERATE,
            user_id,
            new_value=report_data,
        )

    # ---- Read paths ----

    async def get_entity_logs(
        self, school_id: UUID, entity_type: str, entity_id: Any, limit: int = 50
    ) -> List[AuditLog]:
        """Newest first, with the acting user loaded. Empty list on failure."""
        try:
            return await self.repository.list_for_entity(
                school_id, entity_type, str(entity_id), limit
            )
        except Exception as e:
            logger.error(f"Failed to fetch audit logs: {e}", exc_info=True)
            record_swallowed_audit_failure("get_entity_logs")
            return []

    async def get_user_logs(
        self, school_id: UUID, user_id: UUID, limit: int = 50
    ) -> List[AuditLog]:
        try:
            return await self.repository.list_for_user(school_id, user_id, limit)
        except Exception as e:
            logger.error(f"Failed to fetch user audit logs: {e}", exc_info=True)
            record_swallowed_audit_failure("get_user_logs")
            return []
