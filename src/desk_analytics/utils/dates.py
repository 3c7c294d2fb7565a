"""Timestamp parsing and local-time formatting helpers."""

import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from desk_analytics.durations import hrs_to_minutes

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# "05/01/2024, 14:30" or "05-01-2024 14:30" (day first)
_DAY_FIRST_PATTERN = re.compile(r"^(\d{2})[/-](\d{2})[/-](\d{4}),?\s*(\d{2}):(\d{2})")


def parse_timestamp(value: object, tz: ZoneInfo) -> datetime | None:
    """Parse an ISO timestamp into an aware datetime.

    Naive timestamps are taken to be in ``tz``. Returns None for empty or
    unparseable input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def day_bounds(start: date | None, end: date | None, tz: ZoneInfo) -> tuple[datetime | None, datetime | None]:
    """Local-day bounds: ``start`` at 00:00:00 and ``end`` at 23:59:59."""
    lower = datetime.combine(start, time.min, tzinfo=tz) if start else None
    upper = datetime.combine(end, time(23, 59, 59), tzinfo=tz) if end else None
    return lower, upper


def age_in_days(created: object, tz: ZoneInfo, now: datetime | None = None) -> int | None:
    """Whole days elapsed since ``created`` (0 for future timestamps)."""
    created_dt = parse_timestamp(created, tz)
    if created_dt is None:
        return None
    now = now or datetime.now(tz)
    delta = now - created_dt
    if delta.total_seconds() < 0:
        return 0
    return delta.days


def format_local(value: object, tz: ZoneInfo) -> str:
    """Format a timestamp as ``dd/mm/yyyy, HH:MM`` in ``tz``.

    Unparseable input is returned as-is.
    """
    if not value:
        return ""
    dt = parse_timestamp(value, tz)
    if dt is None:
        return str(value)
    return dt.astimezone(tz).strftime("%d/%m/%Y, %H:%M")


def format_with_month_name(value: object, tz: ZoneInfo) -> str:
    """Format as ``"05 January 2024, 14:30"``.

    Accepts day-first ``dd/mm/yyyy, hh:mm`` strings as well as ISO timestamps.
    """
    if not value:
        return ""
    m = _DAY_FIRST_PATTERN.match(str(value))
    if m:
        dd, mm, yyyy, hh, mi = m.groups()
        return f"{dd} {MONTHS[int(mm) - 1]} {yyyy}, {hh}:{mi}"

    dt = parse_timestamp(value, tz)
    if dt is None:
        return str(value)
    dt = dt.astimezone(tz)
    return f"{dt.day:02d} {MONTHS[dt.month - 1]} {dt.year}, {dt.hour:02d}:{dt.minute:02d}"


def first_response_at(created: object, first_response: object, tz: ZoneInfo) -> str:
    """Wall-clock time of the first response: created + first-response minutes.

    Blank when either value is missing or the response took under a minute.
    """
    if not created or not first_response:
        return ""
    minutes = hrs_to_minutes(first_response)
    if minutes is None or minutes < 1:
        return ""
    base = parse_timestamp(created, tz)
    if base is None:
        return ""
    return format_local(base + timedelta(minutes=minutes), tz)
