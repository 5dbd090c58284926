import pytest
from contextlib import asynccontextmanager
from datetime import date, timedelta
from redis.exceptions import LockError, LockNotOwnedError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, InvalidTransitionError
from app.core.redis import AttendanceDayLock, RedisClient
from app.db.seeds.initial_data import create_initial_data
from app.models.auth.user import User
from app.models.hr.attendance import AttendanceRecord
from app.models.hr.employee import Employee
from app.models.shared.enums import AttendanceState
from app.services.hr.attendance_service import AttendanceService
from app.services.hr.attendance_state import check_integrity, new_attendance_record
from app.workers.celery_tasks.hr_tasks import collect_forgotten_checkouts

DAY = date(2026, 3, 2)


class BusyLock:
    @asynccontextmanager
    async def hold(self, employee_id, day):
        raise LockError("Unable to acquire lock")
        yield


class ScriptedLock:
    def __init__(self, acquired=True):
        self.acquired = acquired
        self.released = False

    async def acquire(self):
        return self.acquired

    async def release(self):
        self.released = True
        raise LockNotOwnedError("Cannot release a lock that's no longer owned")


class ScriptedRedis:
    enabled = True

    def __init__(self, lock):
        self._lock = lock

    async def lock(self, name, timeout, blocking_timeout=None):
        return self._lock


@pytest.fixture
def service(session, clock):
    return AttendanceService(session, clock=clock, tz=clock.tz)


async def load_employee(session, employee_id) -> Employee:
    return await session.get(Employee, employee_id)


@pytest.mark.asyncio
class TestTransitions:
    async def test_persisted_day_passes_integrity_check(self, service, session, seed, clock):
        employee = await load_employee(session, seed.alice)

        clock.at(9, 0)
        await service.check_in(employee)
        clock.at(10, 0)
        await service.start_break(employee, reason="bank")
        clock.at(10, 20)
        await service.end_break(employee)
        clock.at(13, 0)
        await service.start_lunch(employee)
        clock.at(13, 40)
        await service.end_lunch(employee)
        clock.at(18, 30)
        response = await service.check_out(employee)

        assert response.total_working_minutes == 570
        assert response.total_break_minutes == 60
        assert response.overtime_minutes == 30

        session.expunge_all()
        result = await session.execute(select(AttendanceRecord).where(AttendanceRecord.employee_id == seed.alice))
        record = result.scalar_one()
        assert record.current_state == AttendanceState.CHECKED_OUT
        assert check_integrity(record) == []

    async def test_rejected_transition_is_not_persisted(self, service, session, seed):
        employee = await load_employee(session, seed.alice)

        with pytest.raises(InvalidTransitionError):
            await service.end_lunch(employee)

        result = await session.execute(select(AttendanceRecord))
        assert result.scalars().all() == []

    async def test_lost_insert_race_is_retried(self, service, session, session_maker, seed):
        async with session_maker() as other:
            other.add(new_attendance_record(seed.alice, DAY))
            await other.commit()

        original = service._get_record
        calls = []

        async def racing_get_record(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                return None
            return await original(*args, **kwargs)

        service._get_record = racing_get_record
        employee = await load_employee(session, seed.alice)

        response = await service.check_in(employee)

        assert len(calls) == 2
        assert response.current_state == AttendanceState.WORKING
        assert len(response.work_sessions) == 1

    async def test_retries_are_bounded(self, service, session, session_maker, seed):
        async with session_maker() as other:
            other.add(new_attendance_record(seed.alice, DAY))
            await other.commit()

        async def always_missing(*args, **kwargs):
            return None

        service._get_record = always_missing
        employee = await load_employee(session, seed.alice)

        with pytest.raises(ConflictError):
            await service.check_in(employee)

    async def test_busy_lock_is_a_conflict(self, session, seed, clock):
        service = AttendanceService(session, lock=BusyLock(), clock=clock, tz=clock.tz)
        employee = await load_employee(session, seed.alice)

        with pytest.raises(ConflictError) as exc_info:
            await service.check_in(employee)
        assert "in progress" in exc_info.value.detail

    async def test_lock_expiring_after_commit_keeps_transition(self, session, seed, clock):
        expired = ScriptedLock()
        service = AttendanceService(session, lock=AttendanceDayLock(ScriptedRedis(expired)), clock=clock, tz=clock.tz)
        employee = await load_employee(session, seed.alice)

        response = await service.check_in(employee)

        assert expired.released
        assert response.current_state == AttendanceState.WORKING

    async def test_lock_not_acquired_is_a_conflict(self, session, seed, clock):
        service = AttendanceService(session, lock=AttendanceDayLock(ScriptedRedis(ScriptedLock(acquired=False))), clock=clock, tz=clock.tz)
        employee = await load_employee(session, seed.alice)

        with pytest.raises(ConflictError):
            await service.check_in(employee)

    async def test_one_record_per_employee_and_day(self, session, seed):
        session.add(new_attendance_record(seed.alice, DAY))
        session.add(new_attendance_record(seed.alice, DAY))
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.asyncio
class TestForgottenCheckouts:
    async def test_only_open_records_from_earlier_days(self, service, session, seed, clock):
        alice = await load_employee(session, seed.alice)
        bob = await load_employee(session, seed.bob)

        clock.at(9, 0)
        await service.check_in(alice)
        await service.check_in(bob)
        clock.at(18, 0)
        await service.check_out(bob)

        assert await service.find_forgotten_checkouts(DAY) == []

        forgotten = await service.find_forgotten_checkouts(DAY + timedelta(days=1))
        assert [r.employee_id for r in forgotten] == [seed.alice]
        assert forgotten[0].current_state == AttendanceState.WORKING

    async def test_daily_report_never_closes_sessions(self, service, session, seed, clock):
        alice = await load_employee(session, seed.alice)
        await service.check_in(alice)

        report = await collect_forgotten_checkouts(session, DAY + timedelta(days=1))
        assert report["count"] == 1
        assert report["records"][0] == {"employee": seed.alice, "date": DAY.isoformat(), "state": "working"}

        status = await service.get_my_status(alice)
        assert status.attendance.current_state == AttendanceState.WORKING


@pytest.mark.asyncio
class TestSupport:
    async def test_day_lock_without_redis_is_pass_through(self):
        lock = AttendanceDayLock(RedisClient(url=""))
        async with lock.hold(1, DAY):
            pass
        assert lock.key(1, DAY) == "attendance:lock:1:2026-03-02"

    async def test_initial_data_is_idempotent(self, session):
        await create_initial_data(session)
        await create_initial_data(session)

        users = (await session.execute(select(User))).scalars().all()
        assert [u.email for u in users] == ["admin@attendance.local"]
        employee = (await session.execute(select(Employee))).scalar_one()
        assert employee.user_id == users[0].id
