from datetime import date, datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo
from app.core.config import settings


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:  # naive → assume UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_server_timezone() -> tzinfo:
    return ZoneInfo(settings.TIMEZONE)


def local_date(dt: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of `dt` in the server's local timezone."""
    return ensure_utc(dt).astimezone(tz or get_server_timezone()).date()


def local_datetime(day: date, at, tz: Optional[tzinfo] = None) -> datetime:
    """Aware UTC datetime for a local wall-clock time on `day`."""
    return ensure_utc(datetime.combine(day, at, tzinfo=tz or get_server_timezone()))


def whole_minutes(start: datetime, end: datetime) -> int:
    """Elapsed whole minutes between two instants, floored and never negative."""
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, int(seconds // 60))
