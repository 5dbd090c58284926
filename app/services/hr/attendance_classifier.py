from collections import Counter
from datetime import date, tzinfo
from typing import Dict, Iterable, Optional

from app.models.hr.attendance import AttendanceRecord
from app.models.shared.enums import AttendanceClassification, AttendanceOrigin, AttendanceState, AttendanceStatus
from app.utils.time_utils import get_server_timezone, local_date


_STATUS_CLASSES = {
    AttendanceStatus.PRESENT: AttendanceClassification.PRESENT,
    AttendanceStatus.ABSENT: AttendanceClassification.ABSENT,
    AttendanceStatus.HALF_DAY: AttendanceClassification.HALF_DAY,
    AttendanceStatus.WFH: AttendanceClassification.WFH,
}


def is_forgotten_checkout(record: AttendanceRecord, today: date, tz: Optional[tzinfo] = None) -> bool:
    """True when the record still has an open work session that began before `today`."""
    session = record.open_work_session
    if session is None:
        return False
    return local_date(session.check_in, tz or get_server_timezone()) < today


def classify_attendance(
    record: Optional[AttendanceRecord],
    today: date,
    tz: Optional[tzinfo] = None,
) -> AttendanceClassification:
    """Read-time classification; never changes the record."""
    if record is None:
        return AttendanceClassification.ABSENT

    if record.origin == AttendanceOrigin.MANUAL:
        return _STATUS_CLASSES.get(AttendanceStatus(record.status), AttendanceClassification.PRESENT)

    if is_forgotten_checkout(record, today, tz):
        return AttendanceClassification.PREVIOUS_DAY

    if record.current_state == AttendanceState.NOT_CHECKED_IN:
        return AttendanceClassification.NOT_CHECKED_IN

    return _STATUS_CLASSES.get(AttendanceStatus(record.status), AttendanceClassification.PRESENT)


def summarize(records: Iterable[AttendanceRecord], today: date, tz: Optional[tzinfo] = None) -> Dict:
    records = list(records)
    tz = tz or get_server_timezone()
    counts = Counter(classify_attendance(r, today, tz) for r in records)

    total_working = sum(r.total_working_minutes or 0 for r in records)
    total_break = sum(r.total_break_minutes or 0 for r in records)

    return {
        "total_records": len(records),
        "present": counts[AttendanceClassification.PRESENT],
        "absent": counts[AttendanceClassification.ABSENT],
        "half_day": counts[AttendanceClassification.HALF_DAY],
        "wfh": counts[AttendanceClassification.WFH],
        "previous_day": counts[AttendanceClassification.PREVIOUS_DAY],
        "not_checked_in": counts[AttendanceClassification.NOT_CHECKED_IN],
        "late_arrivals": len([r for r in records if r.is_late]),
        "total_working_minutes": total_working,
        "total_break_minutes": total_break,
        "average_working_minutes": round(total_working / len(records), 2) if records else 0,
    }
