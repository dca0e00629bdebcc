# backend/edu_erp/services/visibility/visibility_service.py
"""
Exam timetable lifecycle: publish, update and cancel with their side effects,
admit card generation and per-user access checks.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from ...core.exceptions import (
    TimetableAlreadyPublishedError,
    TimetableNotFoundError,
    TimetableNotPublishedError,
)
from ...metrics import TIMETABLE_TRANSITIONS
from ...models import (
    ADMIN_ROLES,
    AdmitCard,
    ExamTimetable,
    Student,
    TimetableStatus,
)
from ...repositories import TimetableRepository, UserRepository
from ..auditing import AuditLogger
from ..notification import ExamNotificationType, NotificationService
from .admit_cards import build_hall_ticket_no, next_sequence, reporting_time

logger = logging.getLogger(__name__)

DISPLAY_DATE_FORMAT = "%d %b %Y"


def format_display_date(value: date) -> str:
    return value.strftime(DISPLAY_DATE_FORMAT)


class VisibilityService:
    """Makes exam timetables visible to the people they concern."""

    def __init__(
        self,
        timetables: TimetableRepository,
        users: UserRepository,
        notifications: NotificationService,
        audit: AuditLogger,
    ):
        self.timetables = timetables
        self.users = users
        self.notifications = notifications
        self.audit = audit

    async def publish_timetable(
        self, timetable_id: UUID, published_by: UUID
    ) -> Dict[str, Any]:
        """
        Publish a timetable and notify everyone it concerns.

        The status flip and admit card generation commit together. Recipient
        lookup, notifications and the audit entry run after that commit, so a
        failure there propagates but leaves the timetable published.

        Returns:
            ``{"success", "notified_users", "students", "teachers"}``

        Raises:
            TimetableNotFoundError: no timetable with that id.
            TimetableAlreadyPublishedError: already published, including a
                concurrent publish that won the status update.
        """
        timetable = await self.timetables.get_with_details(timetable_id)
        if timetable is None:
            raise TimetableNotFoundError(timetable_id)
        if timetable.status == TimetableStatus.PUBLISHED.value:
            raise TimetableAlreadyPublishedError(timetable_id)

        students = await self.timetables.list_active_students(
            timetable.academic_unit_id
        )
        logger.info(
            f"Publishing timetable {timetable_id} for {len(students)} active students"
        )

        try:
            flipped = await self.timetables.mark_published(
                timetable_id, published_by, datetime.now(timezone.utc)
            )
            if not flipped:
                raise TimetableAlreadyPublishedError(timetable_id)
            await self.generate_admit_cards(timetable, students)
            await self.timetables.commit()
        except Exception:
            await self.timetables.rollback()
            raise
        TIMETABLE_TRANSITIONS.labels(action="publish").inc()

        supervisor_user_ids = list(
            dict.fromkeys(
                slot.supervisor.user_id
                for slot in timetable.exam_slots
                if slot.supervisor is not None and slot.supervisor.user_id
            )
        )
        recipients = await self._collect_recipients(
            timetable, students, supervisor_user_ids
        )

        await self.notifications.send_exam_timetable_notification(
            timetable.id,
            recipients,
            ExamNotificationType.SCHEDULED,
            self._notification_details(timetable),
        )
        await self.audit.log_timetable_published(
            timetable.school_id, timetable.id, published_by
        )

        logger.info(
            f"Timetable {timetable_id} published, {len(recipients)} users notified"
        )
        return {
            "success": True,
            "notified_users": len(recipients),
            "students": len(students),
            "teachers": len(supervisor_user_ids),
        }

    async def generate_admit_cards(
        self, timetable: ExamTimetable, students: Sequence[Student]
    ) -> int:
        """
        Insert admit cards for students that do not hold one yet.

        Numbering continues after the timetable's existing cards, so running
        this twice never hands out a number twice. Returns the number of cards
        attempted in this batch. The caller commits.
        """
        existing = await self.timetables.list_admit_cards(timetable.id)
        carded = {card.student_id for card in existing}
        pending = [student for student in students if student.id not in carded]
        if not pending:
            return 0

        year = datetime.now(timezone.utc).year
        start = next_sequence(existing)
        report_at = reporting_time(timetable.slots)
        exam_center = timetable.school.name if timetable.school else None
        class_name = timetable.academic_unit.name

        rows = [
            {
                "timetable_id": timetable.id,
                "student_id": student.id,
                "hall_ticket_no": build_hall_ticket_no(
                    timetable.school_id, class_name, year, start + offset
                ),
                "exam_center": exam_center,
                "reporting_time": report_at,
            }
            for offset, student in enumerate(pending)
        ]
        await self.timetables.create_admit_cards(rows)
        logger.info(f"Generated {len(rows)} admit cards for timetable {timetable.id}")
        return len(rows)

    async def regenerate_admit_cards(self, timetable_id: UUID) -> int:
        """
        Issue cards to active students of a published timetable that lack one.

        Students of the class's sections (child academic units) are included.
        """
        timetable = await self.timetables.get_with_details(timetable_id)
        if timetable is None:
            raise TimetableNotFoundError(timetable_id)
        if timetable.status != TimetableStatus.PUBLISHED.value:
            raise TimetableNotPublishedError(timetable_id)

        students = await self.timetables.list_active_students(
            timetable.academic_unit_id, include_sections=True
        )
        try:
            generated = await self.generate_admit_cards(timetable, students)
            await self.timetables.commit()
        except Exception:
            await self.timetables.rollback()
            raise
        return generated

    async def list_admit_cards(self, timetable_id: UUID) -> List[AdmitCard]:
        """Admit cards of a timetable with their students, by hall ticket number."""
        timetable = await self.timetables.get(timetable_id)
        if timetable is None:
            raise TimetableNotFoundError(timetable_id)
        return await self.timetables.list_admit_cards_with_students(timetable_id)

    async def update_and_notify(
        self, timetable_id: UUID, updated_by: UUID, changes: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Tell the class a timetable changed.

        ``changes`` is not applied to the timetable; it is recorded as the new
        value of an UPDATE audit entry. Only students are notified.
        """
        timetable = await self.timetables.get(timetable_id)
        if timetable is None:
            raise TimetableNotFoundError(timetable_id)

        user_ids = await self._student_user_ids(timetable)
        await self.notifications.send_exam_timetable_notification(
            timetable.id,
            user_ids,
            ExamNotificationType.UPDATED,
            self._notification_details(timetable),
        )
        await self.audit.log_timetable_updated(
            timetable.school_id, timetable.id, updated_by, None, changes
        )
        TIMETABLE_TRANSITIONS.labels(action="update").inc()
        return {"success": True, "notified_users": len(user_ids)}

    async def cancel_and_notify(
        self, timetable_id: UUID, cancelled_by: UUID
    ) -> Dict[str, Any]:
        timetable = await self.timetables.get(timetable_id)
        if timetable is None:
            raise TimetableNotFoundError(timetable_id)

        previous_status = timetable.status
        await self.timetables.set_status(timetable_id, TimetableStatus.CANCELLED)
        await self.timetables.commit()
        TIMETABLE_TRANSITIONS.labels(action="cancel").inc()
        logger.info(f"Timetable {timetable_id} cancelled (was {previous_status})")

        user_ids = await self._student_user_ids(timetable)
        await self.notifications.send_exam_timetable_notification(
            timetable.id,
            user_ids,
            ExamNotificationType.CANCELLED,
            self._notification_details(timetable),
        )
        await self.audit.log_timetable_cancelled(
            timetable.school_id, timetable.id, cancelled_by, previous_status
        )
        return {"success": True, "notified_users": len(user_ids)}

    async def has_access(self, user_id: UUID, timetable_id: UUID) -> bool:
        """Whether the user may view the timetable. False on any lookup failure."""
        try:
            user = await self.users.get_with_profiles(user_id)
            if user is None:
                return False

            timetable = await self.timetables.get_with_details(timetable_id)
            if timetable is None:
                return False

            if user.role in ADMIN_ROLES:
                return True

            if user.student_profile is not None:
                return (
                    user.student_profile.academic_unit_id
                    == timetable.academic_unit_id
                )

            if user.teacher_profile is not None:
                teacher_id = user.teacher_profile.id
                return any(slot.supervisor_id == teacher_id for slot in timetable.slots)

            if user.guardian_profile is not None:
                student_ids = [
                    link.student_id for link in user.guardian_profile.student_links
                ]
                in_class = await self.timetables.count_students_in_unit(
                    student_ids, timetable.academic_unit_id
                )
                return in_class > 0

            return False
        except Exception as e:
            logger.error(f"Error checking access: {e}", exc_info=True)
            return False

    async def _collect_recipients(
        self,
        timetable: ExamTimetable,
        students: Sequence[Student],
        supervisor_user_ids: Sequence[UUID],
    ) -> List[UUID]:
        """Students, supervisors, the primary class teacher and guardians, deduplicated."""
        recipients: Dict[UUID, None] = {}

        for student in students:
            if student.user_id:
                recipients[student.user_id] = None

        for supervisor_user_id in supervisor_user_ids:
            recipients[supervisor_user_id] = None

        class_teacher = await self.timetables.find_primary_class_teacher(
            timetable.academic_unit_id, timetable.academic_year_id
        )
        if class_teacher is not None and class_teacher.teacher.user_id:
            recipients[class_teacher.teacher.user_id] = None

        guardian_user_ids = await self.timetables.list_guardian_user_ids(
            [student.id for student in students]
        )
        for guardian_user_id in guardian_user_ids:
            if guardian_user_id:
                recipients[guardian_user_id] = None

        return list(recipients)

    async def _student_user_ids(self, timetable: ExamTimetable) -> List[UUID]:
        students = await self.timetables.list_active_students(
            timetable.academic_unit_id
        )
        return [student.user_id for student in students if student.user_id]

    @staticmethod
    def _notification_details(timetable: ExamTimetable) -> Dict[str, str]:
        return {
            "exam_name": timetable.exam_name,
            "class_name": timetable.academic_unit.name,
            "start_date": format_display_date(timetable.start_date),
            "end_date": format_display_date(timetable.end_date),
        }
