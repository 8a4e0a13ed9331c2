"""Pytest fixtures for attendance payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from attendance_payroll.attendance.types import (
    BargainingStatus,
    ClockEvent,
    Direction,
    Jornada,
    Origin,
    ReconcileContext,
)
from attendance_payroll.calculators.types import EmployeeClass, EmployeeProfile
from attendance_payroll.config import Settings
from attendance_payroll.models import Base, ClockEventRecord, Employee

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

LOCAL_TZ = ZoneInfo("America/Argentina/Buenos_Aires")


@pytest.fixture
def settings() -> Settings:
    """Deterministic settings that ignore the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        local_timezone="America/Argentina/Buenos_Aires",
        max_workers=1,
    )


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def employees(session: AsyncSession) -> list[Employee]:
    """Create the test roster.

    1: jornal, covered, 1000/h, hired 2020-01-10
    2: jornal, excluded, 1200/h, hired 2023-06-01
    3: mensual, covered, 500000/month, hired 2022-05-31
    4: jornal, covered, no rate on file
    """
    rows = [
        Employee(
            employee_id=1,
            legajo="J-001",
            first_name="Ana",
            last_name="Gomez",
            employee_class="jornal",
            bargaining_status="covered",
            base_rate=Decimal("1000"),
            hire_date=date(2020, 1, 10),
        ),
        Employee(
            employee_id=2,
            legajo="J-002",
            first_name="Bruno",
            last_name="Diaz",
            employee_class="jornal",
            bargaining_status="excluded",
            base_rate=Decimal("1200"),
            hire_date=date(2023, 6, 1),
        ),
        Employee(
            employee_id=3,
            legajo="M-003",
            first_name="Carla",
            last_name="Ruiz",
            employee_class="mensual",
            bargaining_status="covered",
            base_rate=Decimal("500000"),
            hire_date=date(2022, 5, 31),
        ),
        Employee(
            employee_id=4,
            legajo="J-004",
            first_name="Dario",
            last_name="Paz",
            employee_class="jornal",
            bargaining_status="covered",
            base_rate=None,
            hire_date=date(2021, 3, 1),
        ),
    ]
    session.add_all(rows)
    await session.flush()
    return rows


@pytest.fixture
def at():
    """Build a local datetime: at(date(2024, 5, 6), 21, 45)."""
    def _at(day: date, hour: int, minute: int = 0) -> datetime:
        return datetime(day.year, day.month, day.day, hour, minute, tzinfo=LOCAL_TZ)

    return _at


@pytest.fixture
def punch(at):
    """Build a ClockEvent at a local time."""
    def _punch(
        day: date,
        hour: int,
        minute: int,
        direction: str,
        employee_id: int = 1,
    ) -> ClockEvent:
        return ClockEvent(
            timestamp=at(day, hour, minute),
            employee_id=employee_id,
            direction=Direction(direction),
        )

    return _punch


@pytest.fixture
def context():
    """Build a ReconcileContext with sensible defaults."""
    def _context(as_of: date, employee_id: int = 1, **kwargs) -> ReconcileContext:
        return ReconcileContext(employee_id=employee_id, as_of=as_of, **kwargs)

    return _context


@pytest.fixture
def store_punches(session: AsyncSession, at):
    """Insert raw clock rows the way the clock middleware delivers them."""
    async def _store(rows: list[tuple[int, date, int, int, str]]) -> None:
        for employee_id, day, hour, minute, direction in rows:
            stamp = at(day, hour, minute)
            session.add(
                ClockEventRecord(
                    employee_id=employee_id,
                    recorded_at=stamp.isoformat(),
                    direction=direction,
                    event_date=stamp.date(),
                )
            )
        await session.flush()

    return _store


@pytest.fixture
def worked_days():
    """Build plain day-shift Jornadas: worked_days(1, date(2024, 5, 2), 10)."""
    def _days(
        employee_id: int,
        start: date,
        count: int,
        day_hours: Decimal = Decimal("8"),
    ) -> list[Jornada]:
        return [
            Jornada(
                employee_id=employee_id,
                date=start + timedelta(days=offset),
                worked_hours=day_hours,
                day_hours=day_hours,
                origin=Origin.CLOCK,
            )
            for offset in range(count)
        ]

    return _days


@pytest.fixture
def jornal_profile():
    """Covered jornal employee profile, 1000/h, hired 2020-01-10."""
    def _profile(employee_id: int = 1, **overrides) -> EmployeeProfile:
        values = {
            "employee_id": employee_id,
            "legajo": f"J-{employee_id:03d}",
            "name": f"Employee {employee_id}",
            "employee_class": EmployeeClass.JORNAL,
            "bargaining_status": BargainingStatus.COVERED,
            "base_rate": Decimal("1000"),
            "hire_date": date(2020, 1, 10),
        }
        values.update(overrides)
        return EmployeeProfile(**values)

    return _profile
