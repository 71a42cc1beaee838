"""Timezone helpers for itinerary instants."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising ValueError for unknown zones."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone '{tz_name}'") from e


def local_to_utc(day: date, at: time, tz_name: str) -> datetime:
    """Convert a wall-clock date and time in ``tz_name`` to an aware UTC datetime."""
    local = datetime.combine(day, at, tzinfo=get_zone(tz_name))
    return local.astimezone(timezone.utc)


def local_date(instant: datetime, tz_name: str) -> date:
    """Calendar date of ``instant`` as seen in ``tz_name``."""
    return as_utc(instant).astimezone(get_zone(tz_name)).date()


def days_between(start: date, end: date) -> int:
    return (end - start).days
