from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.models.shared.enums import AttendanceClassification, AttendanceOrigin, AttendanceStatus
from app.services.hr.attendance_classifier import classify_attendance, is_forgotten_checkout, summarize
from app.services.hr.attendance_state import check_in, check_out, new_attendance_record

KOLKATA = ZoneInfo("Asia/Kolkata")
TODAY = date(2026, 3, 2)
YESTERDAY = TODAY - timedelta(days=1)


def at(day, hour, minute=0):
    return datetime.combine(day, time(hour, minute), tzinfo=KOLKATA)


def realtime(day, checked_out=False):
    record = new_attendance_record(1, day)
    check_in(record, at(day, 9))
    if checked_out:
        check_out(record, at(day, 18))
    return record


def manual(status):
    record = new_attendance_record(1, YESTERDAY, origin=AttendanceOrigin.MANUAL)
    record.status = status
    return record


class TestClassifyAttendance:
    def test_missing_record_is_absent(self):
        assert classify_attendance(None, TODAY, KOLKATA) == AttendanceClassification.ABSENT

    def test_untouched_record_is_not_checked_in(self):
        record = new_attendance_record(1, TODAY)
        assert classify_attendance(record, TODAY, KOLKATA) == AttendanceClassification.NOT_CHECKED_IN

    def test_working_today_is_present(self):
        assert classify_attendance(realtime(TODAY), TODAY, KOLKATA) == AttendanceClassification.PRESENT

    def test_open_session_from_yesterday_is_previous_day(self):
        record = realtime(YESTERDAY)
        assert is_forgotten_checkout(record, TODAY, KOLKATA)
        assert classify_attendance(record, TODAY, KOLKATA) == AttendanceClassification.PREVIOUS_DAY

    def test_closed_session_from_yesterday_is_present(self):
        record = realtime(YESTERDAY, checked_out=True)
        assert not is_forgotten_checkout(record, TODAY, KOLKATA)
        assert classify_attendance(record, TODAY, KOLKATA) == AttendanceClassification.PRESENT

    def test_day_boundary_uses_server_timezone(self):
        # 00:30 in Kolkata is still the previous day in UTC
        record = new_attendance_record(1, TODAY)
        check_in(record, at(TODAY, 0, 30))
        assert not is_forgotten_checkout(record, TODAY, KOLKATA)
        assert is_forgotten_checkout(record, TODAY + timedelta(days=1), KOLKATA)

    def test_manual_records_follow_their_status(self):
        assert classify_attendance(manual(AttendanceStatus.WFH), TODAY, KOLKATA) == AttendanceClassification.WFH
        assert classify_attendance(manual(AttendanceStatus.HALF_DAY), TODAY, KOLKATA) == AttendanceClassification.HALF_DAY
        assert classify_attendance(manual(AttendanceStatus.ABSENT), TODAY, KOLKATA) == AttendanceClassification.ABSENT


class TestSummarize:
    def test_counts_and_totals(self):
        late = new_attendance_record(1, TODAY)
        check_in(late, at(TODAY, 9))
        late.is_late = True

        records = [
            realtime(YESTERDAY - timedelta(days=1), checked_out=True),
            realtime(YESTERDAY),
            late,
            manual(AttendanceStatus.WFH),
        ]
        summary = summarize(records, TODAY, KOLKATA)

        assert summary["total_records"] == 4
        assert summary["present"] == 2
        assert summary["previous_day"] == 1
        assert summary["wfh"] == 1
        assert summary["late_arrivals"] == 1
        assert summary["total_working_minutes"] == 540
        assert summary["average_working_minutes"] == 135

    def test_empty(self):
        summary = summarize([], TODAY, KOLKATA)
        assert summary["total_records"] == 0
        assert summary["average_working_minutes"] == 0
