# edu_erp/models/exams.py

import enum
import uuid
from typing import List, Optional, TYPE_CHECKING
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .academic import AcademicUnit, School, Student, Subject, Teacher


class TimetableStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class SlotType(str, enum.Enum):
    EXAM = "EXAM"
    BREAK = "BREAK"
    STUDY_LEAVE = "STUDY_LEAVE"


class ExamTimetable(Base, TimestampMixin):
    __tablename__ = "exam_timetables"

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    school_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("schools.id"), nullable=False
    )
    academic_year_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("academic_years.id"), nullable=False
    )
    academic_unit_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("academic_units.id"), nullable=False
    )
    exam_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), default=TimetableStatus.DRAFT.value, nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    published_by: Mapped[uuid.UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id")
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id")
    )

    school: Mapped["School"] = relationship()
    academic_unit: Mapped["AcademicUnit"] = relationship()
    slots: Mapped[List["ExamTimetableSlot"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
        order_by="[ExamTimetableSlot.exam_date, ExamTimetableSlot.slot_order]",
    )
    admit_cards: Mapped[List["AdmitCard"]] = relationship(
        back_populates="timetable", cascade="all, delete-orphan"
    )

    @property
    def exam_slots(self) -> List["ExamTimetableSlot"]:
        return [slot for slot in self.slots if slot.type == SlotType.EXAM.value]


class ExamTimetableSlot(Base, TimestampMixin):
    __tablename__ = "exam_timetable_slots"

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    timetable_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("exam_timetables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slot_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exam_date: Mapped[date] = mapped_column(Date, nullable=False)
    # "HH:MM"
    start_time: Mapped[str | None] = mapped_column(String(5))
    end_time: Mapped[str | None] = mapped_column(String(5))
    type: Mapped[str] = mapped_column(
        String(20), default=SlotType.EXAM.value, nullable=False
    )
    subject_id: Mapped[uuid.UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("subjects.id")
    )
    supervisor_id: Mapped[uuid.UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("teachers.id")
    )
    room: Mapped[str | None] = mapped_column(String(50))

    timetable: Mapped["ExamTimetable"] = relationship(back_populates="slots")
    subject: Mapped[Optional["Subject"]] = relationship()
    supervisor: Mapped[Optional["Teacher"]] = relationship()


class ExamTimetableNotification(Base, TimestampMixin):
    """Per-timetable delivery log, separate from the generic notifications table."""

    __tablename__ = "exam_timetable_notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    timetable_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("exam_timetables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sent_via_app: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sent_via_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class AdmitCard(Base, TimestampMixin):
    __tablename__ = "admit_cards"
    __table_args__ = (
        UniqueConstraint("timetable_id", "student_id", name="uq_admit_card_student"),
        UniqueConstraint(
            "timetable_id", "hall_ticket_no", name="uq_admit_card_hall_ticket"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    timetable_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("exam_timetables.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("students.id"), nullable=False
    )
    hall_ticket_no: Mapped[str] = mapped_column(String(50), nullable=False)
    exam_center: Mapped[str | None] = mapped_column(String(255))
    reporting_time: Mapped[str | None] = mapped_column(String(5))

    timetable: Mapped["ExamTimetable"] = relationship(back_populates="admit_cards")
    student: Mapped["Student"] = relationship()
