"""
Practice time helpers

Session times are stored as naive UTC. Practices think in local calendar
days, so every "sessions on 2026-03-08" style query converts the local day
to UTC bounds first.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import PRACTICE_TIMEZONE


def get_zone(tz_name: Optional[str] = None) -> ZoneInfo:
    """Resolve a timezone name, falling back to the configured default"""
    return ZoneInfo(tz_name or PRACTICE_TIMEZONE)


def is_valid_timezone(tz_name: str) -> bool:
    try:
        ZoneInfo(tz_name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def utcnow() -> datetime:
    """Current time as naive UTC, matching how timestamps are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values pass through"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_local_date(date_str: str) -> date:
    """Parse YYYY-MM-DD, raising ValueError on anything else"""
    return datetime.strptime(date_str, "%Y-%m-%d").date()


def local_date_to_utc_bounds(date_str: str, tz_name: Optional[str] = None) -> tuple[datetime, datetime]:
    """
    Convert a practice-local calendar day to naive UTC bounds.

    Returns (start, end) where start is local midnight and end is the next
    local midnight, so the day is [start, end).
    """
    zone = get_zone(tz_name)
    day = parse_local_date(date_str)
    start_local = datetime.combine(day, time.min, tzinfo=zone)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return to_naive_utc(start_local), to_naive_utc(end_local)


def local_time_to_utc(date_str: str, time_str: str, tz_name: Optional[str] = None) -> datetime:
    """Convert a local date plus HH:MM to naive UTC"""
    zone = get_zone(tz_name)
    day = parse_local_date(date_str)
    clock = datetime.strptime(time_str, "%H:%M").time()
    return to_naive_utc(datetime.combine(day, clock, tzinfo=zone))


def utc_to_local(value: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert naive UTC to an aware local datetime"""
    return value.replace(tzinfo=timezone.utc).astimezone(get_zone(tz_name))


def utc_to_local_date_string(value: datetime, tz_name: Optional[str] = None) -> str:
    return utc_to_local(value, tz_name).strftime("%Y-%m-%d")


def utc_date_matches_local_date(value: datetime, date_str: str, tz_name: Optional[str] = None) -> bool:
    return utc_to_local_date_string(value, tz_name) == date_str


def local_today(tz_name: Optional[str] = None) -> str:
    return utc_to_local_date_string(utcnow(), tz_name)


def iter_local_dates(start_str: str, end_str: str):
    """Yield YYYY-MM-DD strings from start to end inclusive"""
    current = parse_local_date(start_str)
    end = parse_local_date(end_str)
    while current <= end:
        yield current.strftime("%Y-%m-%d")
        current += timedelta(days=1)
