import calendar
import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import date, datetime, tzinfo
from fastapi import HTTPException, status
from redis.exceptions import LockError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, func, select
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from app.core.redis import AttendanceDayLock
from app.models.auth.user import User
from app.models.hr.attendance import AttendanceRecord
from app.models.hr.employee import Employee
from app.models.shared.enums import AttendanceCommand, AttendanceOrigin, AttendanceState, AttendanceStatus
from app.schemas.hr.attendance_schema import (
    AttendanceMarkRequest,
    AttendanceResponse,
    AttendanceUpdateRequest,
    AttendanceWithEmployeeResponse,
    BulkMarkItemError,
    BulkMarkItemResult,
    BulkMarkResponse,
    EmployeeSummary,
    EmployeeSummaryResponse,
    MonthlyReportResponse,
    MonthlySummary,
    MyStatusResponse,
)
from app.services.hr.attendance_classifier import is_forgotten_checkout, summarize
from app.services.hr.attendance_state import (
    WorkSchedule,
    annotate_check_in,
    annotate_check_out,
    apply_command,
    check_integrity,
    new_attendance_record,
)
from app.utils.time_utils import ensure_utc, get_server_timezone, local_date, utc_now, whole_minutes

logger = logging.getLogger(__name__)

OPEN_STATES = (AttendanceState.WORKING, AttendanceState.LUNCH_BREAK, AttendanceState.PERSONAL_BREAK)
# An explicit null clears these on update; other fields ignore nulls
NULLABLE_UPDATE_FIELDS = ("notes", "check_in", "check_out")


def month_bounds(month: int, year: int):
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class AttendanceService:
    def __init__(
        self,
        session: AsyncSession,
        lock: Optional[AttendanceDayLock] = None,
        clock: Callable[[], datetime] = utc_now,
        schedule: Optional[WorkSchedule] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.session = session
        self.lock = lock or AttendanceDayLock()
        self.clock = clock
        self.tz = tz or get_server_timezone()
        self.schedule = schedule or WorkSchedule.from_settings()

    def today(self) -> date:
        return local_date(self.clock(), self.tz)

    # region Attendance Helper Methods
    async def get_employee_for_user(self, user: User) -> Optional[Employee]:
        result = await self.session.execute(
            select(Employee).where(
                Employee.user_id == user.id,
                Employee.is_active == True
            )
        )
        return result.scalar_one_or_none()

    async def _get_employee(self, employee_id: int) -> Employee:
        result = await self.session.execute(
            select(Employee).where(Employee.id == employee_id, Employee.is_active == True)
        )
        employee = result.scalar_one_or_none()
        if not employee:
            raise NotFoundError("Employee not found")
        return employee

    async def _get_record(self, employee_id: int, attendance_date: date, for_update: bool = False) -> Optional[AttendanceRecord]:
        query = select(AttendanceRecord).where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.attendance_date == attendance_date
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalars().first()

    async def _reload(self, record_id: int) -> AttendanceRecord:
        result = await self.session.execute(
            select(AttendanceRecord)
            .options(selectinload(AttendanceRecord.employee))
            .where(AttendanceRecord.id == record_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise NotFoundError("Attendance record not found")
        return record

    async def _load_or_create(self, employee_id: int, attendance_date: date) -> AttendanceRecord:
        record = await self._get_record(employee_id, attendance_date, for_update=True)
        if record is None:
            record = new_attendance_record(employee_id, attendance_date)
            self.session.add(record)
            # A concurrent insert for the same day fails here on the unique constraint
            await self.session.flush()
        return record

    def _apply_manual_times(self, record: AttendanceRecord, explicit_late: bool = False, explicit_departure: bool = False) -> None:
        """Derive worked minutes and annotations for a manually marked record."""
        if record.check_in and record.check_out:
            if ensure_utc(record.check_out) <= ensure_utc(record.check_in):
                raise ValidationError("Check-out must be after check-in")
            record.total_working_minutes = whole_minutes(record.check_in, record.check_out)
        else:
            record.total_working_minutes = 0

        if not explicit_late:
            if record.check_in:
                annotate_check_in(record, record.check_in, self.schedule)
            else:
                record.is_late = False
                record.late_minutes = 0
        if not explicit_departure:
            if record.check_out:
                annotate_check_out(record, record.check_out, self.schedule)
            else:
                record.early_departure = False
                record.early_minutes = 0
                record.overtime_minutes = 0

        record.current_state = AttendanceState.CHECKED_OUT if record.check_in else AttendanceState.NOT_CHECKED_IN
    # endregion

    # ---------- Real-time transitions ---------
    async def _transition(self, employee: Employee, command: AttendanceCommand, reason: Optional[str] = None) -> AttendanceResponse:
        employee_id = employee.id
        now = self.clock()
        attendance_date = local_date(now, self.tz)

        for attempt in range(1, settings.TRANSITION_MAX_RETRIES + 1):
            try:
                async with self.lock.hold(employee_id, attendance_date):
                    record = await self._load_or_create(employee_id, attendance_date)
                    apply_command(record, command, now, reason=reason, schedule=self.schedule)
                    problems = check_integrity(record)
                    if problems:
                        logger.error(f"Attendance record {record.id} inconsistent after {command.value}: {problems}")
                    await self.session.commit()
            except InvalidTransitionError as e:
                await self.session.rollback()
                logger.info(f"Rejected {command.value} for employee {employee_id}: {e.detail}")
                raise
            except IntegrityError:
                await self.session.rollback()
                logger.warning(
                    f"Concurrent attendance write for employee {employee_id} on {attendance_date} "
                    f"(attempt {attempt}/{settings.TRANSITION_MAX_RETRIES})"
                )
                continue
            except LockError:
                await self.session.rollback()
                logger.warning(f"Attendance lock busy for employee {employee_id} on {attendance_date}")
                raise ConflictError("Another attendance update is in progress, please retry")
            except HTTPException:
                await self.session.rollback()
                raise
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Error applying {command.value} for employee {employee_id}: {e}")
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating attendance")

            record = await self._reload(record.id)
            logger.info(
                f"Attendance {command.value}: Employee {employee_id}, Date: {attendance_date}, "
                f"State: {record.current_state.value}, Worked: {record.total_working_minutes}m, Break: {record.total_break_minutes}m"
            )
            return AttendanceResponse.model_validate(record)

        raise ConflictError("Attendance was updated concurrently, please retry")

    async def check_in(self, employee: Employee) -> AttendanceResponse:
        return await self._transition(employee, AttendanceCommand.CHECK_IN)

    async def check_out(self, employee: Employee) -> AttendanceResponse:
        return await self._transition(employee, AttendanceCommand.CHECK_OUT)

    async def start_lunch(self, employee: Employee) -> AttendanceResponse:
        return await self._transition(employee, AttendanceCommand.START_LUNCH)

    async def end_lunch(self, employee: Employee) -> AttendanceResponse:
        return await self._transition(employee, AttendanceCommand.END_LUNCH)

    async def start_break(self, employee: Employee, reason: Optional[str] = None) -> AttendanceResponse:
        return await self._transition(employee, AttendanceCommand.START_BREAK, reason=reason)

    async def end_break(self, employee: Employee) -> AttendanceResponse:
        return await self._transition(employee, AttendanceCommand.END_BREAK)

    # ---------- Self-service reads ----------
    async def get_my_status(self, employee: Employee) -> MyStatusResponse:
        """Today's record, or an unsaved not_checked_in snapshot when there is none yet."""
        record = await self._get_record(employee.id, self.today())
        if record is None:
            record = new_attendance_record(employee.id, self.today())
        return MyStatusResponse(
            attendance=AttendanceResponse.model_validate(record),
            employee=EmployeeSummary.model_validate(employee),
        )

    async def get_my_history(self, employee: Employee, limit: int = 30) -> List[AttendanceResponse]:
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.employee_id == employee.id)
            .order_by(AttendanceRecord.attendance_date.desc())
            .limit(limit)
        )
        return [AttendanceResponse.model_validate(r) for r in result.scalars().all()]

    # ---------- Attendance Retrieval ----------
    async def get_attendance(
        self,
        page_index: int = 1,
        page_size: int = 20,
        employee_id: Optional[int] = None,
        department_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> Dict[str, Any]:
        """Get paginated attendance records with filtering"""
        conditions = []
        if employee_id:
            conditions.append(AttendanceRecord.employee_id == employee_id)
        if department_id:
            conditions.append(Employee.department_id == department_id)
        if start_date:
            conditions.append(AttendanceRecord.attendance_date >= start_date)
        if end_date:
            conditions.append(AttendanceRecord.attendance_date <= end_date)
        if status:
            conditions.append(AttendanceRecord.status == status)

        query = (
            select(AttendanceRecord)
            .join(Employee, AttendanceRecord.employee_id == Employee.id)
            .options(selectinload(AttendanceRecord.employee))
        )
        count_query = (
            select(func.count(AttendanceRecord.id))
            .select_from(AttendanceRecord)
            .join(Employee, AttendanceRecord.employee_id == Employee.id)
        )
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total_count = await self.session.scalar(count_query)

        skip = (page_index - 1) * page_size
        query = query.order_by(AttendanceRecord.attendance_date.desc(), AttendanceRecord.id.desc())
        query = query.offset(skip).limit(page_size)

        result = await self.session.execute(query)
        records = result.scalars().all()

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [AttendanceWithEmployeeResponse.model_validate(r) for r in records],
        }

    async def get_attendance_by_id(self, attendance_id: int) -> AttendanceWithEmployeeResponse:
        record = await self._reload(attendance_id)
        return AttendanceWithEmployeeResponse.model_validate(record)

    # ---------- Manual marking ---------
    async def mark_attendance(self, data: AttendanceMarkRequest, marked_by: Optional[int] = None) -> AttendanceWithEmployeeResponse:
        employee = await self._get_employee(data.employee_id)

        existing = await self._get_record(employee.id, data.attendance_date)
        if existing:
            raise ConflictError("Attendance already marked for this date")

        record = new_attendance_record(employee.id, data.attendance_date, origin=AttendanceOrigin.MANUAL)
        record.status = data.status
        record.check_in = data.check_in
        record.check_out = data.check_out
        record.notes = data.notes
        record.marked_by = marked_by
        record.created_by = marked_by

        explicit_late = data.is_late is not None
        if explicit_late:
            record.is_late = data.is_late
            record.late_minutes = data.late_minutes or 0
        self._apply_manual_times(record, explicit_late=explicit_late)

        try:
            self.session.add(record)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Attendance already marked for this date")
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error marking attendance: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error marking attendance")

        record = await self._reload(record.id)
        logger.info(f"Attendance marked manually: Employee {employee.id}, Date: {data.attendance_date}, Status: {data.status.value}, By: {marked_by}")
        return AttendanceWithEmployeeResponse.model_validate(record)

    async def update_attendance(self, attendance_id: int, data: AttendanceUpdateRequest, updated_by: Optional[int] = None) -> AttendanceWithEmployeeResponse:
        record = await self._reload(attendance_id)
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k in NULLABLE_UPDATE_FIELDS}

        if record.origin == AttendanceOrigin.REALTIME and (fields.keys() & {"check_in", "check_out"}):
            raise ConflictError("Check-in and check-out of a real-time record can only change through the attendance widget")

        try:
            for field, value in fields.items():
                setattr(record, field, value)
            record.updated_by = updated_by

            if record.origin == AttendanceOrigin.MANUAL and (fields.keys() & {"check_in", "check_out"}):
                explicit_late = bool(fields.keys() & {"is_late", "late_minutes"})
                explicit_departure = bool(fields.keys() & {"early_departure", "early_minutes", "overtime_minutes"})
                self._apply_manual_times(record, explicit_late=explicit_late, explicit_departure=explicit_departure)

            await self.session.commit()
        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating attendance {attendance_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating attendance")

        record = await self._reload(attendance_id)
        logger.info(f"Attendance updated: {attendance_id} fields={sorted(fields)}")
        return AttendanceWithEmployeeResponse.model_validate(record)

    async def bulk_mark_attendance(self, records: List[AttendanceMarkRequest], marked_by: Optional[int] = None) -> BulkMarkResponse:
        results: List[BulkMarkItemResult] = []
        errors: List[BulkMarkItemError] = []

        for item in records:
            try:
                await self._get_employee(item.employee_id)
                existing = await self._get_record(item.employee_id, item.attendance_date)

                if existing and existing.origin == AttendanceOrigin.REALTIME:
                    raise ConflictError("Real-time attendance cannot be overwritten by a manual mark")

                if existing:
                    record = existing
                    outcome = "updated"
                else:
                    record = new_attendance_record(item.employee_id, item.attendance_date, origin=AttendanceOrigin.MANUAL)
                    self.session.add(record)
                    outcome = "created"

                record.status = item.status
                if item.check_in:
                    record.check_in = item.check_in
                if item.check_out:
                    record.check_out = item.check_out
                if item.notes:
                    record.notes = item.notes
                record.marked_by = marked_by

                explicit_late = item.is_late is not None
                if explicit_late:
                    record.is_late = item.is_late
                    record.late_minutes = item.late_minutes or 0
                self._apply_manual_times(record, explicit_late=explicit_late)

                await self.session.commit()
                results.append(BulkMarkItemResult(employee=item.employee_id, attendance_date=item.attendance_date, status=outcome))
            except HTTPException as e:
                await self.session.rollback()
                errors.append(BulkMarkItemError(employee=item.employee_id, attendance_date=item.attendance_date, error=str(e.detail)))
            except IntegrityError:
                await self.session.rollback()
                errors.append(BulkMarkItemError(employee=item.employee_id, attendance_date=item.attendance_date, error="Attendance already marked for this date"))

        logger.info(f"Bulk attendance processed: {len(results)} ok, {len(errors)} failed")
        return BulkMarkResponse(processed=len(results), failed=len(errors), results=results, errors=errors)

    async def delete_attendance(self, attendance_id: int) -> bool:
        record = await self._reload(attendance_id)
        try:
            await self.session.delete(record)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting attendance {attendance_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error deleting attendance")
        logger.info(f"Attendance deleted: {attendance_id}")
        return True

    # ---------- Reports ----------
    async def _records_between(
        self,
        start: date,
        end: date,
        employee_id: Optional[int] = None,
        department_id: Optional[int] = None,
    ) -> List[AttendanceRecord]:
        query = (
            select(AttendanceRecord)
            .join(Employee, AttendanceRecord.employee_id == Employee.id)
            .options(selectinload(AttendanceRecord.employee))
            .where(AttendanceRecord.attendance_date.between(start, end))
        )
        if employee_id:
            query = query.where(AttendanceRecord.employee_id == employee_id)
        if department_id:
            query = query.where(Employee.department_id == department_id, Employee.is_active == True)
        result = await self.session.execute(query.order_by(AttendanceRecord.attendance_date.asc()))
        return list(result.scalars().all())

    async def get_monthly_report(
        self,
        month: int,
        year: int,
        employee_id: Optional[int] = None,
        department_id: Optional[int] = None,
    ) -> MonthlyReportResponse:
        start, end = month_bounds(month, year)
        records = await self._records_between(start, end, employee_id, department_id)
        summary = summarize(records, self.today(), self.tz)

        return MonthlyReportResponse(
            month=month,
            year=year,
            attendance=[AttendanceWithEmployeeResponse.model_validate(r) for r in records],
            summary=MonthlySummary(month=month, year=year, total_days=(end - start).days + 1, **summary),
        )

    async def get_employee_summary(self, employee_id: int, month: Optional[int] = None, year: Optional[int] = None) -> EmployeeSummaryResponse:
        employee = await self._get_employee(employee_id)
        today = self.today()
        month = month or today.month
        year = year or today.year

        start, end = month_bounds(month, year)
        records = await self._records_between(start, end, employee_id=employee.id)
        summary = summarize(records, today, self.tz)

        return EmployeeSummaryResponse(
            employee=EmployeeSummary.model_validate(employee),
            attendance=[AttendanceResponse.model_validate(r) for r in records],
            summary=MonthlySummary(month=month, year=year, total_days=(end - start).days + 1, **summary),
        )

    async def find_forgotten_checkouts(self, today: Optional[date] = None) -> List[AttendanceWithEmployeeResponse]:
        """Real-time records still open from an earlier day. Read-only: nothing is closed."""
        today = today or self.today()
        result = await self.session.execute(
            select(AttendanceRecord)
            .options(selectinload(AttendanceRecord.employee))
            .where(
                AttendanceRecord.origin == AttendanceOrigin.REALTIME,
                AttendanceRecord.current_state.in_(OPEN_STATES),
                AttendanceRecord.attendance_date < today,
            )
            .order_by(AttendanceRecord.attendance_date.asc())
        )
        records = [r for r in result.scalars().all() if is_forgotten_checkout(r, today, self.tz)]
        return [AttendanceWithEmployeeResponse.model_validate(r) for r in records]
