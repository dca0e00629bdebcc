# backend/edu_erp/tasks/__init__.py
"""Tasks package for Celery - exports all task functions."""

from .celery_app import celery_app, task_with_db_session

from .notification_tasks import publish_timetable

__all__ = [
    # Core celery components
    "celery_app",
    "task_with_db_session",
    # Notification tasks
    "publish_timetable",
]
