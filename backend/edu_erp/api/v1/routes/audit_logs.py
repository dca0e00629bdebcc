# edu_erp/api/v1/routes/audit_logs.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ....api.deps import get_audit_logger, require_roles
from ....core.exceptions import AccessDeniedError
from ....models import User, UserRole
from ....schemas.audit import AuditLogRead
from ....services import AuditLogger

router = APIRouter()


def resolve_school_scope(user: User, school_id: Optional[UUID]) -> Optional[UUID]:
    """School whose audit trail the user may read. Only super admins pick freely."""
    if user.role == UserRole.SUPER_ADMIN.value:
        return school_id or user.school_id
    if school_id is not None and school_id != user.school_id:
        raise AccessDeniedError(user.id, "Audit logs of another school are not visible")
    return user.school_id


@router.get(
    "/users/{user_id}",
    response_model=List[AuditLogRead],
    summary="Audit entries recorded for a user",
)
async def get_user_audit_logs(
    user_id: UUID,
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
    return await audit.get_user_logs(scope, user_id, limit)
