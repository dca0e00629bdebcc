# backend/edu_erp/tests/api/conftest.py

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from edu_erp.api.deps import (
    current_user,
    get_audit_logger,
    get_notification_service,
    get_visibility_service,
)
from edu_erp.main import app


@pytest.fixture
def login():
    """Call with a User to make it the authenticated caller."""

    def _login(user):
        app.dependency_overrides[current_user] = lambda: user
        return user

    return _login


@pytest_asyncio.fixture
async def client(visibility_service, notification_service, audit_logger):
    app.dependency_overrides[get_visibility_service] = lambda: visibility_service
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_audit_logger] = lambda: audit_logger

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
