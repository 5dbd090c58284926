from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.client.projector import (
    displayed_break_seconds,
    displayed_working_seconds,
    format_duration,
    format_local_time,
    project,
)
from app.models.shared.enums import AttendanceState
from app.schemas.hr.attendance_schema import AttendanceResponse

KOLKATA = ZoneInfo("Asia/Kolkata")
NINE_AM = datetime(2026, 3, 2, 3, 30, tzinfo=timezone.utc)  # 09:00 Asia/Kolkata


def snapshot(**overrides):
    data = {
        "employeeId": 1,
        "date": "2026-03-02",
        "currentState": "working",
        "workSessions": [{"checkIn": NINE_AM.isoformat()}],
        "personalBreaks": [],
        "totalWorkingMinutes": 0,
        "totalBreakMinutes": 0,
    }
    data.update(overrides)
    return AttendanceResponse.model_validate(data)


class TestProjection:
    def test_working_time_ticks_linearly(self):
        record = snapshot()
        t1 = NINE_AM + timedelta(hours=1)
        t2 = t1 + timedelta(seconds=125)

        assert displayed_working_seconds(record, t1) == 3600
        assert displayed_working_seconds(record, t2) - displayed_working_seconds(record, t1) == 125
        assert displayed_break_seconds(record, t2) == 0

    def test_closed_totals_are_added_to_open_session(self):
        record = snapshot(
            totalWorkingMinutes=60,
            workSessions=[
                {"checkIn": NINE_AM.isoformat(), "checkOut": (NINE_AM + timedelta(hours=1)).isoformat(), "durationMinutes": 60},
                {"checkIn": (NINE_AM + timedelta(hours=2)).isoformat()},
            ],
        )
        now = NINE_AM + timedelta(hours=2, minutes=30)
        assert displayed_working_seconds(record, now) == 60 * 60 + 30 * 60

    def test_lunch_break_ticks_break_time_only(self):
        lunch_start = NINE_AM + timedelta(hours=3)
        record = snapshot(currentState="lunch_break", totalBreakMinutes=10, lunchBreak={"start": lunch_start.isoformat()})
        now = lunch_start + timedelta(minutes=15)

        assert displayed_break_seconds(record, now) == 10 * 60 + 15 * 60
        assert displayed_working_seconds(record, now) == 0

    def test_personal_break_ticks_from_break_out(self):
        out = NINE_AM + timedelta(hours=1)
        record = snapshot(currentState="personal_break", personalBreaks=[{"out": out.isoformat(), "reason": "errand"}])

        assert displayed_break_seconds(record, out + timedelta(seconds=42)) == 42

    def test_checked_out_snapshot_does_not_tick(self):
        record = snapshot(
            currentState="checked_out",
            totalWorkingMinutes=540,
            totalBreakMinutes=30,
            workSessions=[{"checkIn": NINE_AM.isoformat(), "checkOut": (NINE_AM + timedelta(hours=9)).isoformat()}],
        )
        later = NINE_AM + timedelta(hours=12)
        assert displayed_working_seconds(record, later) == 540 * 60
        assert displayed_break_seconds(record, later) == 30 * 60

    def test_clock_behind_snapshot_never_goes_negative(self):
        assert displayed_working_seconds(snapshot(), NINE_AM - timedelta(minutes=5)) == 0

    def test_project(self):
        projection = project(snapshot(), NINE_AM + timedelta(minutes=1))
        assert projection.state == AttendanceState.WORKING
        assert projection.working_seconds == 60
        assert projection.break_seconds == 0
        assert projection.last_check_in == NINE_AM


class TestFormatting:
    @pytest.mark.parametrize("seconds, expected", [
        (0, "0h 0m 0s"),
        (3725, "1h 2m 5s"),
        (12345, "3h 25m 45s"),
        (-5, "0h 0m 0s"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_format_local_time(self):
        assert format_local_time(NINE_AM, KOLKATA) == "09:00 AM"
        assert format_local_time(None, KOLKATA) == "--:--"
