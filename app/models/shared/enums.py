from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    HR = "hr"
    EMPLOYEE = "employee"


class AttendanceState(str, Enum):
    """What an employee is doing right now; drives transition legality."""
    NOT_CHECKED_IN = "not_checked_in"
    WORKING = "working"
    LUNCH_BREAK = "lunch_break"
    PERSONAL_BREAK = "personal_break"
    CHECKED_OUT = "checked_out"


class AttendanceStatus(str, Enum):
    """Report-facing label, independent of AttendanceState."""
    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half-day"
    WFH = "wfh"


class AttendanceOrigin(str, Enum):
    REALTIME = "realtime"   # produced by the check-in/out state machine
    MANUAL = "manual"       # marked by an admin or HR user


class AttendanceCommand(str, Enum):
    CHECK_IN = "check_in"
    START_LUNCH = "start_lunch"
    END_LUNCH = "end_lunch"
    START_BREAK = "start_break"
    END_BREAK = "end_break"
    CHECK_OUT = "check_out"


class AttendanceClassification(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half_day"
    WFH = "wfh"
    PREVIOUS_DAY = "previous_day"       # open session from an earlier day (forgot checkout)
    NOT_CHECKED_IN = "not_checked_in"
