from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator

from app.core.exceptions import ValidationError

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

TIME_FORMAT = "%H:%M"
DATE_FORMAT = "%Y-%m-%d"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def parse_hhmm(value: str) -> time:
    try:
        return datetime.strptime(value, TIME_FORMAT).time()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid time '{value}'. Use HH:MM")

def format_hhmm(value: datetime | time) -> str:
    return value.strftime(TIME_FORMAT)

def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")

def weekday_name(day: date) -> str:
    # date.weekday() is 0=Monday..6=Sunday
    return WEEKDAYS[day.weekday()]

def normalize_weekday(value: str) -> str:
    name = value.strip().capitalize()
    if name not in WEEKDAYS:
        raise ValueError(f"Unknown weekday '{value}'")
    return name

def iter_dates(start: date, end: date) -> Iterator[date]:
    """Every calendar date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)

def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [midnight, next midnight) window for timestamp filtering."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)
