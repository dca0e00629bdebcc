# backend/edu_erp/tests/conftest.py

import os

os.environ.setdefault("ENVIRONMENT", "testing")

from contextlib import contextmanager
from typing import Dict, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from prometheus_client import REGISTRY
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import INET, JSONB
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import NullPool

from edu_erp.config import TestingSettings
from edu_erp.models import Base
from edu_erp.services import AuditLogger, NotificationService, VisibilityService
from edu_erp.tests.fakes import (
    FakeAuditLogRepository,
    FakeNotificationRepository,
    FakeStore,
    FakeTimetableRepository,
    FakeUserRepository,
    SchoolBuilder,
)


@pytest.fixture
def settings():
    return TestingSettings(
        SMTP_HOST=None,
        NOTIFICATION_MAX_CONCURRENCY=3,
        APP_BASE_URL="https://erp.school.test",
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def builder(store) -> SchoolBuilder:
    return SchoolBuilder(store)


@pytest.fixture
def timetable_repo(store) -> FakeTimetableRepository:
    return FakeTimetableRepository(store)


@pytest.fixture
def user_repo(store) -> FakeUserRepository:
    return FakeUserRepository(store)


@pytest.fixture
def notification_repo(store) -> FakeNotificationRepository:
    return FakeNotificationRepository(store)


@pytest.fixture
def audit_repo(store) -> FakeAuditLogRepository:
    return FakeAuditLogRepository(store)


@pytest.fixture
def email_service():
    """E-mail gateway double that reports every message as sent."""
    service = AsyncMock()
    service.send_email = AsyncMock(return_value=True)
    return service


@pytest.fixture
def audit_logger(audit_repo) -> AuditLogger:
    return AuditLogger(audit_repo)


@pytest.fixture
def notification_service(
    notification_repo, user_repo, email_service, settings
) -> NotificationService:
    return NotificationService(
        notification_repo, user_repo, email_service=email_service, settings=settings
    )


@pytest.fixture
def visibility_service(
    timetable_repo, user_repo, notification_service, audit_logger
) -> VisibilityService:
    return VisibilityService(
        timetable_repo, user_repo, notification_service, audit_logger
    )


@pytest.fixture
def metric():
    """Read the current value of a Prometheus sample (0 when never touched)."""

    def _read(name: str, labels: Optional[Dict[str, str]] = None) -> float:
        return REGISTRY.get_sample_value(name, labels or {}) or 0.0

    return _read


# ---- Real database ----
#
# Repository tests run the actual statements on a SQLite file through
# aiosqlite. The school_erp schema is translated away and the PostgreSQL-only
# column types are rendered as their SQLite counterparts.


@compiles(JSONB, "sqlite")
def _compile_jsonb_for_sqlite(type_, compiler, **kw):
    return "JSON"


@compiles(INET, "sqlite")
def _compile_inet_for_sqlite(type_, compiler, **kw):
    return "VARCHAR(45)"


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    # File database: every session gets its own connection
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'school_erp.db'}",
        poolclass=NullPool,
        execution_options={"schema_translate_map": {"school_erp": None}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def db_session_maker(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db_session(db_session_maker):
    async with db_session_maker() as session:
        yield session


@pytest.fixture
def failing_statements(db_engine):
    """Make every statement containing ``marker`` fail like a database error."""

    @contextmanager
    def _failing(marker: str):
        def _raise(conn, cursor, statement, parameters, context, executemany):
            if marker in statement.lower():
                raise OperationalError(statement, parameters, Exception("timeout"))

        event.listen(db_engine.sync_engine, "before_cursor_execute", _raise)
        try:
            yield
        finally:
            event.remove(db_engine.sync_engine, "before_cursor_execute", _raise)

    return _failing
