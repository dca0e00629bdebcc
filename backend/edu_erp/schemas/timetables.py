# edu_erp/schemas/timetables.py
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PublishTimetableResponse(BaseModel):
    success: bool
    notified_users: int
    students: int
    teachers: int


class TimetableTaskResponse(BaseModel):
    """Returned when a publish is queued instead of run inline."""

    success: bool = True
    task_id: str
    message: str = "Timetable publish has been queued"


class TimetableUpdateRequest(BaseModel):
    changes: Dict[str, Any] = Field(default_factory=dict)


class TimetableNotifyResponse(BaseModel):
    success: bool
    notified_users: int


class AdmitCardGenerationResponse(BaseModel):
    success: bool = True
    generated: int


class TimetableAccessResponse(BaseModel):
    has_access: bool
    message: Optional[str] = None


class AdmitCardRead(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    admission_no: str
    class_name: Optional[str] = None
    hall_ticket_no: str
    exam_center: Optional[str] = None
    reporting_time: Optional[str] = None
    created_at: datetime


class AdmitCardListResponse(BaseModel):
    success: bool = True
    timetable_id: UUID
    admit_cards: List[AdmitCardRead]
