# backend/edu_erp/services/notification/notification_service.py
"""
In-app notifications with optional e-mail delivery.

Every send writes one notification row per recipient. E-mails are
dispatched after the rows are committed, concurrently but capped by
NOTIFICATION_MAX_CONCURRENCY.
"""

import asyncio
import enum
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from ...config import Settings, get_settings
from ...core.exceptions import NotificationNotFoundError
from ...metrics import (
    EMAIL_DELIVERY_FAILURES,
    NOTIFICATIONS_CREATED,
    record_swallowed_notification_failure,
)
from ...models import ExamTimetableNotification, Notification, User
from ...repositories import NotificationRepository, UserRepository
from .email_service import EmailService

logger = logging.getLogger(__name__)

EXAM_TIMETABLE_ENTITY = "EXAM_TIMETABLE"


class ExamNotificationType(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    UPDATED = "UPDATED"
    CANCELLED = "CANCELLED"


_EXAM_TITLES = {
    ExamNotificationType.SCHEDULED: "New Exam Scheduled: {exam_name}",
    ExamNotificationType.UPDATED: "Exam Updated: {exam_name}",
    ExamNotificationType.CANCELLED: "Exam Cancelled: {exam_name}",
}

_EXAM_MESSAGES = {
    ExamNotificationType.SCHEDULED: (
        "{exam_name} has been scheduled for {class_name} from {start_date} to "
        "{end_date}. Please check your exam timetable for details."
    ),
    ExamNotificationType.UPDATED: (
        "{exam_name} for {class_name} has been updated. "
        "Please review the latest timetable."
    ),
    ExamNotificationType.CANCELLED: "{exam_name} for {class_name} has been cancelled.",
}


class NotificationService:
    """Creates notifications and delivers the optional e-mail copy."""

    def __init__(
        self,
        notifications: NotificationRepository,
        users: UserRepository,
        email_service: Optional[EmailService] = None,
        settings: Optional[Settings] = None,
    ):
        self.notifications = notifications
        self.users = users
        self.settings = settings or get_settings()
        self.email_service = email_service or EmailService()

    async def send_to_user(
        self,
        user_id: UUID,
        notification_type: str,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[Any] = None,
        send_email: bool = False,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            is_read=False,
        )
        await self.notifications.add(notification)
        await self.notifications.commit()
        NOTIFICATIONS_CREATED.labels(notification_type=notification_type).inc()

        if send_email:
            user = await self.users.get(user_id)
            if user:
                await self._email_user(user, notification_type, title, message)
            else:
                logger.warning(f"User {user_id} not found, skipping e-mail")

        return notification

    async def send_to_multiple_users(
        self,
        user_ids: Sequence[UUID],
        notification_type: str,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[Any] = None,
        send_email: bool = False,
    ) -> List[Notification]:
        """
        One notification row per id, committed together, then e-mails.

        E-mail dispatch runs concurrently under a semaphore. An exception from
        any dispatch propagates out of the gather unchanged.
        """
        if not user_ids:
            return []

        stored_entity_id = str(entity_id) if entity_id is not None else None
        rows = [
            Notification(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=stored_entity_id,
                is_read=False,
            )
            for user_id in user_ids
        ]
        await self.notifications.add_many(rows)
        await self.notifications.commit()
        NOTIFICATIONS_CREATED.labels(notification_type=notification_type).inc(
            len(rows)
        )
        logger.info(f"Created {len(rows)} '{notification_type}' notifications")

        if send_email:
            users = await self.users.list_by_ids(list(dict.fromkeys(user_ids)))
            users_by_id = {user.id: user for user in users}
            semaphore = asyncio.Semaphore(
                max(1, self.settings.NOTIFICATION_MAX_CONCURRENCY)
            )

            async def _dispatch(user: User) -> None:
                async with semaphore:
                    await self._email_user(user, notification_type, title, message)

            await asyncio.gather(
                *(
                    _dispatch(users_by_id[user_id])
                    for user_id in user_ids
                    if user_id in users_by_id
                )
            )

        return rows

    async def send_exam_timetable_notification(
        self,
        timetable_id: UUID,
        user_ids: Sequence[UUID],
        notification_type: ExamNotificationType,
        details: Dict[str, str],
    ) -> int:
        """
        Notify users about a timetable event.

        ``details`` carries exam_name, class_name, start_date and end_date,
        dates already formatted for display. Returns the number of
        per-timetable log rows written.
        """
        exam_type = ExamNotificationType(notification_type)
        title = _EXAM_TITLES[exam_type].format(**details)
        message = _EXAM_MESSAGES[exam_type].format(**details)
        type_code = f"EXAM_{exam_type.value}"

        if not user_ids:
            logger.info(f"No recipients for {type_code} on timetable {timetable_id}")
            return 0

        entries = [
            ExamTimetableNotification(
                timetable_id=timetable_id,
                user_id=user_id,
                type=type_code,
                title=title,
                message=message,
                sent_via_app=True,
                sent_via_email=False,
            )
            for user_id in user_ids
        ]
        written = await self.notifications.add_timetable_log(entries)
        await self.notifications.commit()

        await self.send_to_multiple_users(
            user_ids,
            type_code,
            title,
            message,
            entity_type=EXAM_TIMETABLE_ENTITY,
            entity_id=timetable_id,
            send_email=True,
        )
        return written

    async def send_result_published_notification(
        self, exam_id: Any, user_ids: Sequence[UUID], exam_name: str
    ) -> List[Notification]:
        return await self.send_to_multiple_users(
            user_ids,
            "RESULTS_PUBLISHED",
            f"Results Published: {exam_name}",
            f"Your results for {exam_name} have been published. "
            "Check your dashboard to view your performance.",
            entity_type="EXAM",
            entity_id=exam_id,
            send_email=True,
        )

    async def send_report_card_notification(
        self,
        user_ids: Sequence[UUID],
        exam_name: str,
        report_card_url: Optional[str] = None,
    ) -> List[Notification]:
        message = f"Your report card for {exam_name} is now available for download."
        if report_card_url:
            message += " Download it from your dashboard."
        return await self.send_to_multiple_users(
            user_ids,
            "REPORT_CARD_AVAILABLE",
            f"Report Card Available: {exam_name}",
            message,
            entity_type="REPORT_CARD",
            entity_id=exam_name,
            send_email=True,
        )

    async def mark_as_read(
        self, notification_id: UUID, user_id: Optional[UUID] = None
    ) -> Notification:
        """Mark one notification read. With ``user_id``, only the owner's."""
        notification = await self.notifications.get(notification_id)
        if notification is None or (
            user_id is not None and notification.user_id != user_id
        ):
            raise NotificationNotFoundError(notification_id)

        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await self.notifications.commit()
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        updated = await self.notifications.mark_all_as_read(
            user_id, datetime.now(timezone.utc)
        )
        await self.notifications.commit()
        return updated

    async def get_user_notifications(
        self, user_id: UUID, limit: int = 20
    ) -> List[Notification]:
        return await self.notifications.list_for_user(user_id, limit)

    async def get_unread_count(self, user_id: UUID) -> int:
        try:
            return await self.notifications.count_unread(user_id)
        except Exception as e:
            logger.error(f"Error fetching unread count: {e}", exc_info=True)
            record_swallowed_notification_failure("get_unread_count")
            return 0

    async def _email_user(
        self, user: User, notification_type: str, title: str, message: str
    ) -> None:
        if not user.email:
            logger.debug(f"User {user.id} has no e-mail address, skipping")
            return

        sent = await self.email_service.send_email(
            subject=title,
            recipients=[user.email],
            template_name="notification",
            context={
                "app_name": self.settings.APP_NAME,
                "user_name": user.full_name,
                "title": title,
                "message": message,
                "dashboard_url": f"{self.settings.APP_BASE_URL}/dashboard",
            },
        )
        if not sent:
            logger.warning(f"E-mail '{title}' to user {user.id} was not delivered")
            EMAIL_DELIVERY_FAILURES.labels(notification_type=notification_type).inc()
