"""
Persistence gateway for the append-only audit trail.
"""

from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..models import AuditLog
from .base import BaseRepository


class AuditLogRepository(BaseRepository):
    async def add(self, entry: AuditLog) -> AuditLog:
        async with self._guard("add"):
            self.session.add(entry)
            await self.session.flush()
            return entry

    async def list_for_entity(
        self, school_id: UUID, entity_type: str, entity_id: str, limit: int = 50
    ) -> List[AuditLog]:
        async with self._guard("list_for_entity"):
            stmt = (
                select(AuditLog)
                .where(
                    AuditLog.school_id == school_id,
                    AuditLog.entity_type == entity_type,
                    AuditLog.entity_id == entity_id,
                )
                .options(selectinload(AuditLog.user))
                .order_by(AuditLog.created_at.desc())
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def list_for_user(
        self, school_id: UUID, user_id: UUID, limit: int = 50
    ) -> List[AuditLog]:
        async with self._guard("list_for_user"):
            stmt = (
                select(AuditLog)
                .where(AuditLog.school_id == school_id, AuditLog.user_id == user_id)
                .order_by(AuditLog.created_at.desc())
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())
