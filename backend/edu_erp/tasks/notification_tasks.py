# backend/edu_erp/tasks/notification_tasks.py

"""
Celery tasks for timetable publishing and its notification fan-out.
"""

import logging
from typing import Any, Dict
from uuid import UUID

from celery import Task
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import TimetableAlreadyPublishedError, TimetableNotFoundError
from ..services.factory import build_visibility_service
from .celery_app import _run_coro_in_new_loop, celery_app, task_with_db_session

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="publish_timetable")
def publish_timetable(
    self: Task, timetable_id: str, published_by: str
) -> Dict[str, Any]:
    """
    Publish a timetable off the request path.

    Expected application errors (not found, already published) end the task
    with ``success: False`` and the error payload. Anything else fails the task.
    """
    logger.info(f"Publishing timetable {timetable_id} (task {self.request.id})")
    self.update_state(state="PROGRESS", meta={"phase": "publishing"})
    try:
        return _run_coro_in_new_loop(
            _async_publish_timetable(UUID(timetable_id), UUID(published_by))
        )
    except (TimetableNotFoundError, TimetableAlreadyPublishedError) as exc:
        logger.warning(f"Timetable {timetable_id} was not published: {exc}")
        return {"success": False, **exc.to_dict()}


@task_with_db_session
async def _async_publish_timetable(
    session: AsyncSession, timetable_id: UUID, published_by: UUID
) -> Dict[str, Any]:
    service = build_visibility_service(session)
    return await service.publish_timetable(timetable_id, published_by)
