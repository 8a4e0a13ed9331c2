"""Integration test fixtures: services and the HTTP app over in-memory SQLite."""

from collections.abc import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.api.app import create_app
from attendance_payroll.api.dependencies import get_db_session
from attendance_payroll.config import get_settings
from attendance_payroll.services.repositories import SqlJornadaRepository


@pytest_asyncio.fixture
async def jornada_repo(session: AsyncSession, settings) -> SqlJornadaRepository:
    return SqlJornadaRepository(session, ZoneInfo(settings.local_timezone))


@pytest_asyncio.fixture
async def client(session: AsyncSession, settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test session.

    The lifespan is not run, so the app never opens its own engine.
    """
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
