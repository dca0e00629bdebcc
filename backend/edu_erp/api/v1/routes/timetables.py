# edu_erp/api/v1/routes/timetables.py

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from ....api.deps import (
    current_user,
    get_audit_logger,
    get_visibility_service,
    require_roles,
)
from ....models import User, UserRole
from ....schemas.audit import AuditLogWithUserRead
from ....schemas.timetables import (
    AdmitCardGenerationResponse,
    AdmitCardListResponse,
    AdmitCardRead,
    PublishTimetableResponse,
    TimetableAccessResponse,
    TimetableNotifyResponse,
    TimetableTaskResponse,
    TimetableUpdateRequest,
)
from ....services import AuditEntity, AuditLogger, VisibilityService
from .audit_logs import resolve_school_scope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{timetable_id}/publish",
    response_model=PublishTimetableResponse,
    responses={202: {"model": TimetableTaskResponse}},
    summary="Publish an exam timetable",
)
async def publish_timetable(
    timetable_id: UUID,
    background: bool = Query(
        False, description="Queue the publish as a background task"
    ),
    user: User = Depends(require_roles(UserRole.SCHOOL_ADMIN, UserRole.TEACHER)),
    service: VisibilityService = Depends(get_visibility_service),
):
    """
    Publishes a DRAFT timetable: flips its status, generates admit cards and
    notifies students, supervisors, the class teacher and guardians.
    """
    if background:
        from ....tasks.notification_tasks import publish_timetable as publish_task

        task = publish_task.delay(str(timetable_id), str(user.id))
        logger.info(f"Queued publish of timetable {timetable_id} as task {task.id}")
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=TimetableTaskResponse(task_id=str(task.id)).model_dump(),
        )

    return await service.publish_timetable(timetable_id, user.id)


@router.post(
    "/{timetable_id}/notify-update",
    response_model=TimetableNotifyResponse,
    summary="Notify students that a timetable changed",
)
async def notify_timetable_update(
    timetable_id: UUID,
    request: TimetableUpdateRequest,
    user: User = Depends(require_roles(UserRole.SCHOOL_ADMIN, UserRole.TEACHER)),
    service: VisibilityService = Depends(get_visibility_service),
):
    return await service.update_and_notify(timetable_id, user.id, request.changes)


@router.post(
    "/{timetable_id}/cancel",
    response_model=TimetableNotifyResponse,
    summary="Cancel a timetable and notify students",
)
async def cancel_timetable(
    timetable_id: UUID,
    user: User = Depends(require_roles(UserRole.SCHOOL_ADMIN)),
    service: VisibilityService = Depends(get_visibility_service),
):
    return await service.cancel_and_notify(timetable_id, user.id)


@router.post(
    "/{timetable_id}/admit-cards",
    response_model=AdmitCardGenerationResponse,
    summary="Generate missing admit cards for a published timetable",
)
async def generate_admit_cards(
    timetable_id: UUID,
    user: User = Depends(require_roles(UserRole.SCHOOL_ADMIN, UserRole.TEACHER)),
    service: VisibilityService = Depends(get_visibility_service),
):
    generated = await service.regenerate_admit_cards(timetable_id)
    return AdmitCardGenerationResponse(generated=generated)


@router.get(
    "/{timetable_id}/admit-cards",
    response_model=AdmitCardListResponse,
    summary="List the admit cards of a timetable",
)
async def list_admit_cards(
    timetable_id: UUID,
    user: User = Depends(require_roles(UserRole.SCHOOL_ADMIN, UserRole.TEACHER)),
    service: VisibilityService = Depends(get_visibility_service),
):
    cards = await service.list_admit_cards(timetable_id)
    return AdmitCardListResponse(
        timetable_id=timetable_id,
        admit_cards=[
            AdmitCardRead(
                id=card.id,
                student_id=card.student_id,
                student_name=card.student.full_name,
                admission_no=card.student.admission_no,
                class_name=(
                    card.student.academic_unit.name
                    if card.student.academic_unit
                    else None
                ),
                hall_ticket_no=card.hall_ticket_no,
                exam_center=card.exam_center,
                reporting_time=card.reporting_time,
                created_at=card.created_at,
            )
            for card in cards
        ],
    )


@router.get(
    "/{timetable_id}/access",
    response_model=TimetableAccessResponse,
    summary="Check whether the current user may view a timetable",
)
async def check_timetable_access(
    timetable_id: UUID,
    user: User = Depends(current_user),
    service: VisibilityService = Depends(get_visibility_service),
):
    has_access = await service.has_access(user.id, timetable_id)
    return TimetableAccessResponse(
        has_access=has_access,
        message=None if has_access else "You do not have access to this timetable",
    )


@router.get(
    "/{timetable_id}/audit-logs",
    response_model=List[AuditLogWithUserRead],
    summary="Audit trail of a timetable",
)
async def get_timetable_audit_logs(
    timetable_id: UUID,
    school_id: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(require_roles(UserRole.SCHOOL_ADMIN)),
    audit: AuditLogger = Depends(get_audit_logger),
):
    scope = resolve_school_scope(user, school_id)
    if scope is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="school_id is required",
        )
    return await audit.get_entity_logs(
        scope, AuditEntity.EXAM_TIMETABLE, timetable_id, limit
    )
