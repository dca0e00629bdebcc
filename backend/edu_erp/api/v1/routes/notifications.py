# edu_erp/api/v1/routes/notifications.py
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ....api.deps import current_user, get_notification_service
from ....models import User
from ....schemas.notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)
from ....services import NotificationService

router = APIRouter()


@router.get("/", response_model=NotificationListResponse)
async def get_my_notifications(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Newest notifications of the current user plus the unread count."""
    user_id = user.id
    # Serialize before counting: a failed count rolls the session back and
    # expires the loaded rows
    notifications = [
        NotificationRead.model_validate(n)
        for n in await service.get_user_notifications(user_id, limit)
    ]
    unread_count = await service.get_unread_count(user_id)
    return NotificationListResponse(
        notifications=notifications, unread_count=unread_count
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    user: User = Depends(current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return UnreadCountResponse(unread_count=await service.get_unread_count(user.id))


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_notification_as_read(
    notification_id: UUID,
    user: User = Depends(current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Mark one of the current user's notifications as read."""
    return await service.mark_as_read(notification_id, user_id=user.id)


@router.post("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_notifications_as_read(
    user: User = Depends(current_user),
    service: NotificationService = Depends(get_notification_service),
):
    updated = await service.mark_all_as_read(user.id)
    return MarkAllReadResponse(updated=updated)
