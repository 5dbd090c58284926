"""
Attendance state machine.

Pure functions over an ``AttendanceRecord``: every command checks that it is
legal from the record's ``current_state`` before touching anything, mutates
the session/break data, and recomputes the totals from scratch.

    not_checked_in -> working -> {lunch_break, personal_break} -> working -> checked_out

Personal breaks and the lunch break do not close the open work session; they
are timed on top of it.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from typing import Dict, FrozenSet, List, Optional

from app.core.config import settings
from app.core.exceptions import InvalidTransitionError
from app.models.hr.attendance import AttendanceRecord, PersonalBreak, WorkSession
from app.models.shared.enums import AttendanceCommand, AttendanceOrigin, AttendanceState, AttendanceStatus
from app.utils.time_utils import ensure_utc, get_server_timezone, local_datetime, whole_minutes

logger = logging.getLogger(__name__)

S = AttendanceState
C = AttendanceCommand

TRANSITIONS: Dict[AttendanceCommand, FrozenSet[AttendanceState]] = {
    C.CHECK_IN: frozenset({S.NOT_CHECKED_IN}),
    C.START_LUNCH: frozenset({S.WORKING}),
    C.END_LUNCH: frozenset({S.LUNCH_BREAK}),
    C.START_BREAK: frozenset({S.WORKING}),
    C.END_BREAK: frozenset({S.PERSONAL_BREAK}),
    C.CHECK_OUT: frozenset({S.WORKING}),
}

_REJECTIONS = {
    (C.CHECK_IN, S.WORKING): "Already checked in for today",
    (C.CHECK_IN, S.LUNCH_BREAK): "Already checked in for today",
    (C.CHECK_IN, S.PERSONAL_BREAK): "Already checked in for today",
    (C.START_LUNCH, S.LUNCH_BREAK): "Lunch break already in progress",
    (C.START_LUNCH, S.PERSONAL_BREAK): "End your personal break before starting lunch",
    (C.END_LUNCH, S.NOT_CHECKED_IN): "No active lunch break to end",
    (C.END_LUNCH, S.WORKING): "No active lunch break to end",
    (C.END_LUNCH, S.PERSONAL_BREAK): "No active lunch break to end",
    (C.END_LUNCH, S.CHECKED_OUT): "No active lunch break to end",
    (C.START_BREAK, S.PERSONAL_BREAK): "Personal break already in progress",
    (C.START_BREAK, S.LUNCH_BREAK): "End your lunch break before starting a personal break",
    (C.END_BREAK, S.NOT_CHECKED_IN): "No active break to end",
    (C.END_BREAK, S.WORKING): "No active break to end",
    (C.END_BREAK, S.LUNCH_BREAK): "No active break to end",
    (C.END_BREAK, S.CHECKED_OUT): "No active break to end",
    (C.CHECK_OUT, S.LUNCH_BREAK): "End your lunch break before checking out",
    (C.CHECK_OUT, S.PERSONAL_BREAK): "End your personal break before checking out",
}


@dataclass(frozen=True)
class WorkSchedule:
    """Reference working hours used for late / early / overtime annotations."""
    start: time
    end: time
    late_grace_minutes: int = 0
    overtime_threshold_minutes: int = 0
    tz: Optional[tzinfo] = None

    @classmethod
    def from_settings(cls) -> "WorkSchedule":
        return cls(
            start=settings.WORK_DAY_START,
            end=settings.WORK_DAY_END,
            late_grace_minutes=settings.LATE_GRACE_MINUTES,
            overtime_threshold_minutes=settings.OVERTIME_THRESHOLD_MINUTES,
            tz=get_server_timezone(),
        )

    def starts_at(self, day: date) -> datetime:
        return local_datetime(day, self.start, self.tz)

    def ends_at(self, day: date) -> datetime:
        return local_datetime(day, self.end, self.tz)


def new_attendance_record(
    employee_id: int,
    attendance_date: date,
    origin: AttendanceOrigin = AttendanceOrigin.REALTIME,
) -> AttendanceRecord:
    """Build an empty record with every counter initialised."""
    return AttendanceRecord(
        employee_id=employee_id,
        attendance_date=attendance_date,
        origin=origin,
        current_state=S.NOT_CHECKED_IN,
        status=AttendanceStatus.PRESENT,
        lunch_duration_minutes=0,
        total_working_minutes=0,
        total_break_minutes=0,
        is_late=False,
        late_minutes=0,
        early_departure=False,
        early_minutes=0,
        overtime_minutes=0,
        work_sessions=[],
        personal_breaks=[],
    )


# region Legality

def _rejection_message(command: AttendanceCommand, state: AttendanceState) -> str:
    if state == S.CHECKED_OUT:
        return _REJECTIONS.get((command, state), "Already checked out for today")
    if state == S.NOT_CHECKED_IN:
        return _REJECTIONS.get((command, state), "Please check in first")
    return _REJECTIONS.get((command, state), f"Cannot {command.value.replace('_', ' ')} while {state.value.replace('_', ' ')}")


def ensure_can_apply(record: AttendanceRecord, command: AttendanceCommand) -> None:
    """Raise InvalidTransitionError unless `command` is legal for `record`."""
    command = AttendanceCommand(command)
    state = AttendanceState(record.current_state or S.NOT_CHECKED_IN)

    if record.origin == AttendanceOrigin.MANUAL:
        raise InvalidTransitionError(
            "Attendance for this day was marked manually; contact HR to change it",
            current_state=state.value,
            command=command.value,
        )

    if state not in TRANSITIONS[command]:
        raise InvalidTransitionError(_rejection_message(command, state), current_state=state.value, command=command.value)

    if command == C.START_LUNCH and record.lunch_taken:
        raise InvalidTransitionError("Lunch break already taken today", current_state=state.value, command=command.value)

# endregion


# region Commands

def check_in(record: AttendanceRecord, now: datetime, schedule: Optional[WorkSchedule] = None) -> AttendanceRecord:
    ensure_can_apply(record, C.CHECK_IN)
    now = ensure_utc(now)

    record.work_sessions.append(WorkSession(check_in=now, duration_minutes=0))
    record.current_state = S.WORKING
    record.status = AttendanceStatus.PRESENT
    if schedule is not None:
        annotate_check_in(record, now, schedule)

    recalculate_totals(record)
    return record


def start_lunch(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    ensure_can_apply(record, C.START_LUNCH)

    record.lunch_start = ensure_utc(now)
    record.lunch_end = None
    record.lunch_duration_minutes = 0
    record.current_state = S.LUNCH_BREAK

    recalculate_totals(record)
    return record


def end_lunch(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    ensure_can_apply(record, C.END_LUNCH)
    now = ensure_utc(now)

    record.lunch_end = now
    record.lunch_duration_minutes = whole_minutes(record.lunch_start, now)
    record.current_state = S.WORKING

    recalculate_totals(record)
    return record


def start_break(record: AttendanceRecord, now: datetime, reason: Optional[str] = None) -> AttendanceRecord:
    ensure_can_apply(record, C.START_BREAK)

    reason = (reason or "").strip() or None
    record.personal_breaks.append(PersonalBreak(break_out=ensure_utc(now), duration_minutes=0, reason=reason))
    record.current_state = S.PERSONAL_BREAK

    recalculate_totals(record)
    return record


def end_break(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    ensure_can_apply(record, C.END_BREAK)
    now = ensure_utc(now)

    open_break = record.open_personal_break
    if open_break is None:
        # State says personal_break but nothing is open: refuse rather than guess.
        raise InvalidTransitionError("No active break to end", current_state=S.PERSONAL_BREAK.value, command=C.END_BREAK.value)

    open_break.break_in = now
    open_break.duration_minutes = whole_minutes(open_break.break_out, now)
    record.current_state = S.WORKING

    recalculate_totals(record)
    return record


def check_out(record: AttendanceRecord, now: datetime, schedule: Optional[WorkSchedule] = None) -> AttendanceRecord:
    ensure_can_apply(record, C.CHECK_OUT)
    now = ensure_utc(now)

    session = record.open_work_session
    if session is None:
        raise InvalidTransitionError("No open work session to check out from", current_state=S.WORKING.value, command=C.CHECK_OUT.value)

    session.check_out = now
    session.duration_minutes = whole_minutes(session.check_in, now)
    record.current_state = S.CHECKED_OUT
    if schedule is not None:
        annotate_check_out(record, now, schedule)

    recalculate_totals(record)
    return record


def apply_command(
    record: AttendanceRecord,
    command: AttendanceCommand,
    now: datetime,
    reason: Optional[str] = None,
    schedule: Optional[WorkSchedule] = None,
) -> AttendanceRecord:
    """Dispatch a transition command by name."""
    command = AttendanceCommand(command)
    if command == C.CHECK_IN:
        return check_in(record, now, schedule)
    if command == C.START_LUNCH:
        return start_lunch(record, now)
    if command == C.END_LUNCH:
        return end_lunch(record, now)
    if command == C.START_BREAK:
        return start_break(record, now, reason)
    if command == C.END_BREAK:
        return end_break(record, now)
    return check_out(record, now, schedule)

# endregion


# region Totals & annotations

def recalculate_totals(record: AttendanceRecord) -> AttendanceRecord:
    """Recompute totals from closed intervals only; open ones are never counted."""
    working = 0
    for session in record.work_sessions:
        if session.check_out is not None:
            session.duration_minutes = whole_minutes(session.check_in, session.check_out)
            working += session.duration_minutes

    breaks = 0
    for personal_break in record.personal_breaks:
        if personal_break.break_in is not None:
            personal_break.duration_minutes = whole_minutes(personal_break.break_out, personal_break.break_in)
            breaks += personal_break.duration_minutes

    if record.lunch_start is not None and record.lunch_end is not None:
        record.lunch_duration_minutes = whole_minutes(record.lunch_start, record.lunch_end)
        breaks += record.lunch_duration_minutes

    record.total_working_minutes = working
    record.total_break_minutes = breaks
    return record


def annotate_check_in(record: AttendanceRecord, at: datetime, schedule: WorkSchedule) -> None:
    shift_start = schedule.starts_at(record.attendance_date)
    at = ensure_utc(at)
    if whole_minutes(shift_start, at) > schedule.late_grace_minutes:
        record.is_late = True
        record.late_minutes = whole_minutes(shift_start, at)
    else:
        record.is_late = False
        record.late_minutes = 0


def annotate_check_out(record: AttendanceRecord, at: datetime, schedule: WorkSchedule) -> None:
    shift_end = schedule.ends_at(record.attendance_date)
    at = ensure_utc(at)

    early = whole_minutes(at, shift_end)
    record.early_departure = early > 0
    record.early_minutes = early

    overtime = whole_minutes(shift_end, at)
    record.overtime_minutes = overtime if overtime > schedule.overtime_threshold_minutes else 0

# endregion


def check_integrity(record: AttendanceRecord) -> List[str]:
    """List every way the record's state disagrees with its session/break data."""
    problems = []
    open_sessions = [s for s in record.work_sessions if s.check_out is None]
    open_breaks = [b for b in record.personal_breaks if b.break_in is None]
    state = AttendanceState(record.current_state or S.NOT_CHECKED_IN)

    if len(open_sessions) > 1:
        problems.append("more than one open work session")
    if len(open_breaks) > 1:
        problems.append("more than one open personal break")
    if open_breaks and record.lunch_open:
        problems.append("personal break and lunch break open at the same time")

    expected = {
        S.NOT_CHECKED_IN: (0, 0, False),
        S.WORKING: (1, 0, False),
        S.LUNCH_BREAK: (1, 0, True),
        S.PERSONAL_BREAK: (1, 1, False),
        S.CHECKED_OUT: (0, 0, False),
    }[state]
    if (len(open_sessions), len(open_breaks), record.lunch_open) != expected:
        problems.append(f"state {state.value} does not match open sessions/breaks")
    if state == S.NOT_CHECKED_IN and record.work_sessions:
        problems.append("not_checked_in record has work sessions")

    closed_work = sum(s.duration_minutes or 0 for s in record.work_sessions if s.check_out is not None)
    if (record.total_working_minutes or 0) != closed_work:
        problems.append("total_working_minutes does not match closed sessions")

    return problems
