import os
import tempfile

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["TIMEZONE"] = "Asia/Kolkata"
os.environ["REDIS_URL"] = ""
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="attendance-logs-")

import pytest
from datetime import date, datetime, time, timezone
from types import SimpleNamespace
from typing import AsyncGenerator
from zoneinfo import ZoneInfo
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.api.dependencies import get_attendance_service
from app.core.database import get_async_session
from app.core.security import create_access_token
from app.models.base import Base
from app.models.auth.user import User
from app.models.hr.employee import Employee
from app.models.organization.department import Department
from app.models.shared.enums import UserRole
from app.services.hr.attendance_service import AttendanceService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
KOLKATA = ZoneInfo("Asia/Kolkata")
DAY = date(2026, 3, 2)


class FakeClock:
    """Settable clock; `at` takes local wall-clock time in the server timezone."""

    def __init__(self, tz=KOLKATA):
        self.tz = tz
        self.now = self.at(9, 0)

    def at(self, hour: int, minute: int = 0, second: int = 0, day: date = DAY) -> datetime:
        self.now = datetime.combine(day, time(hour, minute, second), tzinfo=self.tz).astimezone(timezone.utc)
        return self.now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as db:
        yield db


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def seed(session_maker) -> SimpleNamespace:
    """Two departments, an admin, an HR user, two employees and a user without a profile."""
    async with session_maker() as db:
        engineering = Department(name="Engineering", code="ENG", is_active=True)
        operations = Department(name="Operations", code="OPS", is_active=True)
        db.add_all([engineering, operations])
        await db.flush()

        admin = User(email="admin@test.local", full_name="Admin User", role=UserRole.ADMIN, is_active=True)
        hr = User(email="hr@test.local", full_name="HR User", role=UserRole.HR, is_active=True)
        alice_user = User(email="alice@test.local", full_name="Alice Rao", role=UserRole.EMPLOYEE, is_active=True)
        bob_user = User(email="bob@test.local", full_name="Bob Iyer", role=UserRole.EMPLOYEE, is_active=True)
        orphan = User(email="orphan@test.local", full_name="No Profile", role=UserRole.EMPLOYEE, is_active=True)
        db.add_all([admin, hr, alice_user, bob_user, orphan])
        await db.flush()

        alice = Employee(
            employee_code="EMP001", user_id=alice_user.id, first_name="Alice", last_name="Rao",
            email="alice@test.local", department_id=engineering.id, is_active=True,
        )
        bob = Employee(
            employee_code="EMP002", user_id=bob_user.id, first_name="Bob", last_name="Iyer",
            email="bob@test.local", department_id=operations.id, is_active=True,
        )
        db.add_all([alice, bob])
        await db.commit()

        return SimpleNamespace(
            admin=admin.id,
            hr=hr.id,
            alice_user=alice_user.id,
            bob_user=bob_user.id,
            orphan=orphan.id,
            alice=alice.id,
            bob=bob.id,
            engineering=engineering.id,
            operations=operations.id,
        )


@pytest.fixture
def auth_headers():
    def _headers(user_id: int) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers


@pytest.fixture
async def client(session_maker, clock, seed) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as db:
            yield db

    async def override_service(db: AsyncSession = Depends(get_async_session)) -> AttendanceService:
        return AttendanceService(db, clock=clock, tz=KOLKATA)

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_attendance_service] = override_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
