# backend/edu_erp/tasks/celery_app.py
import asyncio
import logging
from functools import wraps

from celery import Celery
from celery.signals import setup_logging
from kombu import Queue
from sqlalchemy import NullPool, text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ..config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def make_celery() -> Celery:
    app = Celery(
        "edu_erp_tasks",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["edu_erp.tasks.notification_tasks"],
    )

    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_routes={
            "publish_timetable": {"queue": "notifications"},
            "edu_erp.tasks.notification_tasks.*": {"queue": "notifications"},
        },
        task_default_queue="default",
        task_queues=(
            Queue("default", routing_key="default"),
            Queue("notifications", routing_key="notifications"),
        ),
        task_soft_time_limit=300,
        task_time_limit=600,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        result_expires=3600,
        worker_send_task_events=True,
        task_send_sent_event=True,
        task_reject_on_worker_lost=True,
        task_ignore_result=False,
    )

    @setup_logging.connect
    def config_loggers(*args, **kwargs):
        from logging.config import dictConfig

        dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "default": {
                        "format": "[%(asctime)s: %(levelname)s/%(name)s] %(message)s"
                    }
                },
                "handlers": {
                    "console": {
                        "level": "INFO",
                        "class": "logging.StreamHandler",
                        "formatter": "default",
                    }
                },
                "root": {"level": "INFO", "handlers": ["console"]},
                "loggers": {
                    "celery": {
                        "level": "INFO",
                        "handlers": ["console"],
                        "propagate": False,
                    },
                    "edu_erp": {
                        "level": settings.LOG_LEVEL,
                        "handlers": ["console"],
                        "propagate": False,
                    },
                },
            }
        )

    return app


# single canonical instance
celery_app = make_celery()


def _run_coro_in_new_loop(coro):
    """
    Runs a coroutine in a new asyncio event loop, ensuring proper cleanup.
    Celery tasks are synchronous, so every async task body goes through here.
    """
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        except RuntimeError as e:
            logger.debug(f"Async generator shutdown skipped: {e}")
        loop.close()
        asyncio.set_event_loop(None)


def task_with_db_session(func):
    """
    Provide a fresh AsyncSession to a coroutine task function.

    A NullPool engine is created per call so no connection outlives the
    event loop that opened it.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        engine = create_async_engine(
            settings.DATABASE_URL, poolclass=NullPool, echo=False
        )
        async_session = async_sessionmaker(engine, expire_on_commit=False)

        try:
            async with async_session() as session:
                try:
                    result = await func(session, *args, **kwargs)
                    await session.commit()
                    return result
                except Exception:
                    await session.rollback()
                    raise
        finally:
            await engine.dispose()

    return wrapper


@celery_app.task(name="health_check")
def health_check():
    async def _check():
        engine = create_async_engine(
            settings.DATABASE_URL, poolclass=NullPool, echo=False
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {
                "status": "healthy",
                "service": "worker",
                "database": {"status": "healthy"},
            }
        except Exception as e:
            logger.error(f"Worker database check failed: {e}")
            return {
                "status": "unhealthy",
                "service": "worker",
                "database": {"status": "unhealthy", "error": str(e)},
            }
        finally:
            await engine.dispose()

    return _run_coro_in_new_loop(_check())


# export
__all__ = ["celery_app", "task_with_db_session", "_run_coro_in_new_loop"]
