from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Optional
from datetime import date, datetime
from app.models.shared.enums import AttendanceOrigin, AttendanceState, AttendanceStatus
from app.utils.time_utils import ensure_utc

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


# region Nested shapes

class WorkSessionResponse(CamelModel):
    check_in: UtcDatetime
    check_out: Optional[UtcDatetime] = None
    duration_minutes: int = 0


class PersonalBreakResponse(CamelModel):
    break_out: UtcDatetime = Field(alias="out")
    break_in: Optional[UtcDatetime] = Field(default=None, alias="in")
    duration_minutes: int = 0
    reason: Optional[str] = None


class LunchBreakResponse(CamelModel):
    start: UtcDatetime
    end: Optional[UtcDatetime] = None
    duration_minutes: int = 0


class EmployeeSummary(CamelModel):
    id: int
    employee_code: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    department_id: Optional[int] = None

# endregion


class AttendanceResponse(CamelModel):
    id: Optional[int] = None
    employee_id: int
    attendance_date: date = Field(alias="date")
    origin: AttendanceOrigin = AttendanceOrigin.REALTIME
    current_state: AttendanceState = AttendanceState.NOT_CHECKED_IN
    status: AttendanceStatus = AttendanceStatus.PRESENT
    work_sessions: List[WorkSessionResponse] = []
    lunch_break: Optional[LunchBreakResponse] = None
    personal_breaks: List[PersonalBreakResponse] = []
    total_working_minutes: int = 0
    total_break_minutes: int = 0
    check_in: Optional[UtcDatetime] = None
    check_out: Optional[UtcDatetime] = None
    is_late: bool = False
    late_minutes: int = 0
    early_departure: bool = False
    early_minutes: int = 0
    overtime_minutes: int = 0
    notes: Optional[str] = None
    marked_by: Optional[int] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    @model_validator(mode="before")
    @classmethod
    def from_record(cls, data: Any) -> Any:
        """Flatten an AttendanceRecord (ORM) into the wire shape."""
        if isinstance(data, (dict, BaseModel)) or not hasattr(data, "work_sessions"):
            return data

        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            if name in ("work_sessions", "personal_breaks", "lunch_break", "employee"):
                continue
            values[name] = getattr(data, name, None)

        values["work_sessions"] = [
            {"check_in": s.check_in, "check_out": s.check_out, "duration_minutes": s.duration_minutes or 0}
            for s in data.work_sessions
        ]
        values["personal_breaks"] = [
            {"break_out": b.break_out, "break_in": b.break_in, "duration_minutes": b.duration_minutes or 0, "reason": b.reason}
            for b in data.personal_breaks
        ]
        if data.lunch_start is not None:
            values["lunch_break"] = {
                "start": data.lunch_start,
                "end": data.lunch_end,
                "duration_minutes": data.lunch_duration_minutes or 0,
            }
        if "employee" in cls.model_fields:
            values["employee"] = EmployeeSummary.model_validate(data.employee) if data.employee is not None else None

        return {key: value for key, value in values.items() if value is not None}


class AttendanceWithEmployeeResponse(AttendanceResponse):
    employee: Optional[EmployeeSummary] = None


class MyStatusResponse(CamelModel):
    attendance: AttendanceResponse
    employee: EmployeeSummary


# region Requests

class BreakStartRequest(CamelModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class AttendanceMarkRequest(CamelModel):
    employee_id: int = Field(alias="employee")
    attendance_date: date = Field(alias="date")
    status: AttendanceStatus
    check_in: Optional[UtcDatetime] = None
    check_out: Optional[UtcDatetime] = None
    notes: Optional[str] = None
    is_late: Optional[bool] = None
    late_minutes: Optional[int] = Field(default=None, ge=0)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v):
        return v.strip() if v else v

    @model_validator(mode="after")
    def validate_times(self):
        if self.check_in and self.check_out and self.check_out <= self.check_in:
            raise ValueError("Check-out must be after check-in")
        return self


class AttendanceUpdateRequest(CamelModel):
    status: Optional[AttendanceStatus] = None
    check_in: Optional[UtcDatetime] = None
    check_out: Optional[UtcDatetime] = None
    notes: Optional[str] = None
    is_late: Optional[bool] = None
    late_minutes: Optional[int] = Field(default=None, ge=0)
    early_departure: Optional[bool] = None
    early_minutes: Optional[int] = Field(default=None, ge=0)
    overtime_minutes: Optional[int] = Field(default=None, ge=0)


class BulkMarkRequest(CamelModel):
    records: List[AttendanceMarkRequest] = Field(min_length=1)


class BulkMarkItemResult(CamelModel):
    employee: int
    attendance_date: date = Field(alias="date")
    status: str


class BulkMarkItemError(CamelModel):
    employee: int
    attendance_date: date = Field(alias="date")
    error: str


class BulkMarkResponse(CamelModel):
    processed: int
    failed: int
    results: List[BulkMarkItemResult] = []
    errors: List[BulkMarkItemError] = []

# endregion


# region Reports

class AttendanceSummary(CamelModel):
    total_records: int = 0
    present: int = 0
    absent: int = 0
    half_day: int = 0
    wfh: int = 0
    previous_day: int = 0
    not_checked_in: int = 0
    late_arrivals: int = 0
    total_working_minutes: int = 0
    total_break_minutes: int = 0
    average_working_minutes: float = 0


class MonthlySummary(AttendanceSummary):
    month: int
    year: int
    total_days: int


class MonthlyReportResponse(CamelModel):
    month: int
    year: int
    attendance: List[AttendanceWithEmployeeResponse] = []
    summary: MonthlySummary


class EmployeeSummaryResponse(CamelModel):
    employee: EmployeeSummary
    attendance: List[AttendanceResponse] = []
    summary: MonthlySummary

# endregion
