"""
Persistence gateway for users and their role profiles.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..models import Guardian, User
from .base import BaseRepository


class UserRepository(BaseRepository):
    async def get(self, user_id: UUID) -> Optional[User]:
        async with self._guard("get"):
            return await self.session.get(User, user_id)

    async def get_with_profiles(self, user_id: UUID) -> Optional[User]:
        """User with student, teacher and guardian (plus its student links) loaded."""
        async with self._guard("get_with_profiles"):
            stmt = (
                select(User)
                .where(User.id == user_id)
                .options(
                    selectinload(User.student_profile),
                    selectinload(User.teacher_profile),
                    selectinload(User.guardian_profile).selectinload(
                        Guardian.student_links
                    ),
                )
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

    async def list_by_ids(self, user_ids: Sequence[UUID]) -> List[User]:
        if not user_ids:
            return []
        async with self._guard("list_by_ids"):
            stmt = select(User).where(User.id.in_(list(user_ids)))
            result = await self.session.execute(stmt)
            return list(result.scalars().all())
