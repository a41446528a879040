"""Time helpers. All stored timestamps are UTC."""
from datetime import datetime, date, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def day_range(day: date):
    """Return (start, end) UTC datetimes covering ``day``; end is exclusive."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def month_range(year: int, month: int):
    """Return (start, end) UTC datetimes covering a calendar month; end is exclusive."""
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def to_iso(value):
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
