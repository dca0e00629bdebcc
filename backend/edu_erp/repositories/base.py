"""
Base repository shared by the persistence gateways.

Repositories wrap a single AsyncSession that is injected by the caller, so
the session (and its connection) lifecycle stays with whoever created it:
a FastAPI request, a Celery task or a test.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class BaseRepository:
    """Common unit-of-work helpers and error translation."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def commit(self) -> None:
        async with self._guard("commit"):
            await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        """Translate SQLAlchemy failures into PersistenceError."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(
                f"{self.__class__.__name__}.{operation} failed: {e}", exc_info=True
            )
            await self.session.rollback()
            raise PersistenceError(
                f"Database operation '{operation}' failed",
                operation=operation,
                cause=e,
            ) from e
