"""
Persistence gateway for in-app notifications and the per-timetable delivery log.
"""

from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update

from ..models import ExamTimetableNotification, Notification
from .base import BaseRepository


class NotificationRepository(BaseRepository):
    async def add(self, notification: Notification) -> Notification:
        async with self._guard("add"):
            self.session.add(notification)
            await self.session.flush()
            return notification

    async def add_many(self, notifications: Sequence[Notification]) -> List[Notification]:
        if not notifications:
            return []
        async with self._guard("add_many"):
            self.session.add_all(list(notifications))
            await self.session.flush()
            return list(notifications)

    async def add_timetable_log(
        self, entries: Sequence[ExamTimetableNotification]
    ) -> int:
        if not entries:
            return 0
        async with self._guard("add_timetable_log"):
            self.session.add_all(list(entries))
            await self.session.flush()
            return len(entries)

    async def get(self, notification_id: UUID) -> Optional[Notification]:
        async with self._guard("get"):
            return await self.session.get(Notification, notification_id)

    async def mark_all_as_read(self, user_id: UUID, read_at: datetime) -> int:
        async with self._guard("mark_all_as_read"):
            stmt = (
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=read_at)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            return result.rowcount

    async def list_for_user(self, user_id: UUID, limit: int = 20) -> List[Notification]:
        async with self._guard("list_for_user"):
            stmt = (
                select(Notification)
                .where(Notification.user_id == user_id)
                .order_by(Notification.created_at.desc())
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def count_unread(self, user_id: UUID) -> int:
        async with self._guard("count_unread"):
            stmt = select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one()
