"""
Persistence gateway for exam timetables, their classes and admit cards.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import selectinload

from ..models import (
    AcademicUnit,
    AdmitCard,
    ClassTeacher,
    ExamTimetable,
    ExamTimetableSlot,
    Guardian,
    Student,
    StudentGuardian,
    StudentStatus,
    TimetableStatus,
)
from .base import BaseRepository


class TimetableRepository(BaseRepository):
    async def get_with_details(self, timetable_id: UUID) -> Optional[ExamTimetable]:
        """Timetable with its class, school and slots (subject + supervisor)."""
        async with self._guard("get_with_details"):
            stmt = (
                select(ExamTimetable)
                .where(ExamTimetable.id == timetable_id)
                .options(
                    selectinload(ExamTimetable.academic_unit),
                    selectinload(ExamTimetable.school),
                    selectinload(ExamTimetable.slots).selectinload(
                        ExamTimetableSlot.subject
                    ),
                    selectinload(ExamTimetable.slots).selectinload(
                        ExamTimetableSlot.supervisor
                    ),
                )
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

    async def get(self, timetable_id: UUID) -> Optional[ExamTimetable]:
        """Timetable with its class only."""
        async with self._guard("get"):
            stmt = (
                select(ExamTimetable)
                .where(ExamTimetable.id == timetable_id)
                .options(selectinload(ExamTimetable.academic_unit))
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

    async def list_active_students(
        self, academic_unit_id: UUID, include_sections: bool = False
    ) -> List[Student]:
        """Active students of a class, optionally with those of its child sections."""
        in_unit = Student.academic_unit_id == academic_unit_id
        if include_sections:
            sections = select(AcademicUnit.id).where(
                AcademicUnit.parent_id == academic_unit_id
            )
            in_unit = or_(in_unit, Student.academic_unit_id.in_(sections))

        async with self._guard("list_active_students"):
            stmt = (
                select(Student)
                .where(in_unit, Student.status == StudentStatus.ACTIVE.value)
                .order_by(Student.admission_no, Student.id)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def find_primary_class_teacher(
        self, academic_unit_id: UUID, academic_year_id: UUID
    ) -> Optional[ClassTeacher]:
        async with self._guard("find_primary_class_teacher"):
            stmt = (
                select(ClassTeacher)
                .where(
                    ClassTeacher.academic_unit_id == academic_unit_id,
                    ClassTeacher.academic_year_id == academic_year_id,
                    ClassTeacher.is_primary.is_(True),
                    ClassTeacher.is_active.is_(True),
                )
                .options(selectinload(ClassTeacher.teacher))
                .limit(1)
            )
            result = await self.session.execute(stmt)
            return result.scalars().first()

    async def list_guardian_user_ids(
        self, student_ids: Sequence[UUID]
    ) -> List[Optional[UUID]]:
        """User ids of every guardian linked to any of the students (may hold None)."""
        if not student_ids:
            return []
        async with self._guard("list_guardian_user_ids"):
            stmt = (
                select(Guardian.user_id)
                .join(StudentGuardian, StudentGuardian.guardian_id == Guardian.id)
                .where(StudentGuardian.student_id.in_(list(student_ids)))
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def mark_published(
        self, timetable_id: UUID, published_by: UUID, published_at: datetime
    ) -> bool:
        """Flip status to PUBLISHED unless it already is. Returns False on a lost race."""
        async with self._guard("mark_published"):
            stmt = (
                update(ExamTimetable)
                .where(
                    ExamTimetable.id == timetable_id,
                    ExamTimetable.status != TimetableStatus.PUBLISHED.value,
                )
                .values(
                    status=TimetableStatus.PUBLISHED.value,
                    published_at=published_at,
                    published_by=published_by,
                )
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            return result.rowcount == 1

    async def set_status(self, timetable_id: UUID, status: TimetableStatus) -> None:
        async with self._guard("set_status"):
            await self.session.execute(
                update(ExamTimetable)
                .where(ExamTimetable.id == timetable_id)
                .values(status=status.value)
                .execution_options(synchronize_session=False)
            )

    async def list_admit_cards(self, timetable_id: UUID) -> List[AdmitCard]:
        async with self._guard("list_admit_cards"):
            stmt = (
                select(AdmitCard)
                .where(AdmitCard.timetable_id == timetable_id)
                .order_by(AdmitCard.hall_ticket_no)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def list_admit_cards_with_students(
        self, timetable_id: UUID
    ) -> List[AdmitCard]:
        async with self._guard("list_admit_cards_with_students"):
            stmt = (
                select(AdmitCard)
                .where(AdmitCard.timetable_id == timetable_id)
                .options(
                    selectinload(AdmitCard.student).selectinload(Student.academic_unit)
                )
                .order_by(AdmitCard.hall_ticket_no)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def create_admit_cards(self, rows: List[Dict[str, Any]]) -> int:
        """Bulk insert, silently skipping rows that hit a unique constraint."""
        if not rows:
            return 0
        async with self._guard("create_admit_cards"):
            stmt = pg_insert(AdmitCard).values(rows).on_conflict_do_nothing()
            result = await self.session.execute(stmt)
            return result.rowcount

    async def count_students_in_unit(
        self, student_ids: Sequence[UUID], academic_unit_id: UUID
    ) -> int:
        if not student_ids:
            return 0
        async with self._guard("count_students_in_unit"):
            stmt = select(func.count(Student.id)).where(
                Student.id.in_(list(student_ids)),
                Student.academic_unit_id == academic_unit_id,
            )
            result = await self.session.execute(stmt)
            return result.scalar_one()
