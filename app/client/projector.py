"""
Display-only projection of an attendance snapshot.

Totals from the server count closed intervals only; the open interval is
added here from wall-clock ``now`` on every evaluation, so repeated ticks
never drift and never write anything back.
"""
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Optional

from app.models.shared.enums import AttendanceState
from app.schemas.hr.attendance_schema import AttendanceResponse
from app.utils.time_utils import ensure_utc


@dataclass(frozen=True)
class Projection:
    state: AttendanceState
    working_seconds: int
    break_seconds: int
    last_check_in: Optional[datetime] = None


def _elapsed(since: Optional[datetime], now: datetime) -> float:
    if since is None:
        return 0.0
    return max(0.0, (ensure_utc(now) - ensure_utc(since)).total_seconds())


def _last_open_session_start(snapshot: AttendanceResponse) -> Optional[datetime]:
    for session in reversed(snapshot.work_sessions):
        if session.check_out is None:
            return session.check_in
    return None


def _last_open_break_start(snapshot: AttendanceResponse) -> Optional[datetime]:
    for personal_break in reversed(snapshot.personal_breaks):
        if personal_break.break_in is None:
            return personal_break.break_out
    return None


def displayed_working_seconds(snapshot: AttendanceResponse, now: datetime) -> int:
    seconds = snapshot.total_working_minutes * 60
    if snapshot.current_state == AttendanceState.WORKING:
        seconds += _elapsed(_last_open_session_start(snapshot), now)
    return int(seconds)


def displayed_break_seconds(snapshot: AttendanceResponse, now: datetime) -> int:
    seconds = snapshot.total_break_minutes * 60
    if snapshot.current_state == AttendanceState.LUNCH_BREAK and snapshot.lunch_break is not None:
        seconds += _elapsed(snapshot.lunch_break.start, now)
    if snapshot.current_state == AttendanceState.PERSONAL_BREAK:
        seconds += _elapsed(_last_open_break_start(snapshot), now)
    return int(seconds)


def project(snapshot: AttendanceResponse, now: datetime) -> Projection:
    last_check_in = snapshot.work_sessions[-1].check_in if snapshot.work_sessions else snapshot.check_in
    return Projection(
        state=snapshot.current_state,
        working_seconds=displayed_working_seconds(snapshot, now),
        break_seconds=displayed_break_seconds(snapshot, now),
        last_check_in=last_check_in,
    )


def format_duration(seconds: float) -> str:
    """12345 -> '3h 25m 45s'"""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"


def format_local_time(dt: Optional[datetime], tz: tzinfo) -> str:
    if dt is None:
        return "--:--"
    return ensure_utc(dt).astimezone(tz).strftime("%I:%M %p")
