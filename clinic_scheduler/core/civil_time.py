"""Conversions between absolute instants and clinic civil date/time.

Instants are stored as naive UTC (TIMESTAMP WITHOUT TIME ZONE). Civil values
are what the clinic sees on the wall clock under a fixed UTC offset with no
daylight saving. Every "same calendar day" decision must go through
``civil_date``; comparing raw instants is off by one day near midnight.
"""
import re
from datetime import UTC, date, datetime, time, timedelta, timezone

from clinic_scheduler.core.config import settings

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def clinic_tz() -> timezone:
    return timezone(timedelta(hours=settings.utc_offset_hours))


def as_aware_utc(instant: datetime) -> datetime:
    """Naive values are read as UTC, the storage convention."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def to_civil(instant: datetime) -> datetime:
    return as_aware_utc(instant).astimezone(clinic_tz())


def civil_date(instant: datetime) -> date:
    return to_civil(instant).date()


def civil_time(instant: datetime) -> str:
    """Civil time-of-day as zero-padded ``HH:MM:SS``."""
    return to_civil(instant).strftime("%H:%M:%S")


def to_instant(day: date, time_of_day: str | time) -> datetime:
    """Civil date + time-of-day to naive UTC for storage."""
    if isinstance(time_of_day, str):
        time_of_day = time.fromisoformat(normalize_time(time_of_day))
    local = datetime.combine(day, time_of_day, tzinfo=clinic_tz())
    return local.astimezone(UTC).replace(tzinfo=None)


def normalize_instant(dt: datetime) -> datetime:
    """Normalize API input to naive UTC.

    Aware datetimes are converted. Naive datetimes come from scheduling forms
    and are read as clinic civil time.
    """
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return to_instant(dt.date(), dt.time())


def civil_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open naive-UTC range [start, end) covering one civil day."""
    start = to_instant(day, time(0, 0))
    return start, start + timedelta(days=1)


def weekday_index(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def normalize_time(value: str) -> str:
    """``H:MM``, ``HH:MM`` or ``HH:MM:SS`` to ``HH:MM:SS``."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")
    hour, minute, second = (int(part) if part else 0 for part in match.groups())
    if hour > 23 or minute > 59 or second > 59:
        raise ValueError(f"Invalid time of day: {value!r}")
    return f"{hour:02d}:{minute:02d}:{second:02d}"


def utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)
