"""Duration parsing for Zoho Desk metric strings.

Zoho reports durations as free-form text such as ``"20 days 04:40 hrs"``,
``"04:40 hrs"`` or a bare ``"5"``. Two parsers live here:

- ``parse_duration_hours`` is lenient and always returns a number of hours
  (0 when nothing can be read). Used by the agent performance aggregation.
- ``hrs_to_minutes`` only accepts the strict ``"H:MM hrs"`` form and returns
  None otherwise, so table averages can skip rows without a value.
"""

import re

# "20 days 04:40 hrs"
_DAYS_CLOCK_PATTERN = re.compile(r"(\d+)\s*days?\s+(\d{1,2}):(\d{2})\s*hrs?")
# "04:40 hrs"
_CLOCK_PATTERN = re.compile(r"(\d{1,2}):(\d{2})\s*hrs?")
# "5", "5 hrs", "2.5"
_NUMBER_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")
# Anchored, case-insensitive; no day component
_STRICT_HRS_PATTERN = re.compile(r"^(\d+):(\d{2})\s*hrs$", re.IGNORECASE)


def parse_duration_hours(value: object) -> float:
    """Parse a Zoho duration string into hours.

    Tried in order: days + clock, clock only, first decimal number.
    Anything else (including None and non-strings) gives 0.
    """
    if not value or not isinstance(value, str):
        return 0

    s = value.strip().lower()

    m = _DAYS_CLOCK_PATTERN.search(s)
    if m:
        days, hours, minutes = (int(g) for g in m.groups())
        return days * 24 + hours + minutes / 60

    m = _CLOCK_PATTERN.search(s)
    if m:
        hours, minutes = (int(g) for g in m.groups())
        return hours + minutes / 60

    m = _NUMBER_PATTERN.search(s)
    if m:
        return float(m.group(1))

    return 0


def hrs_to_minutes(value: object) -> int | None:
    """Convert a strict ``"H:MM hrs"`` string to total minutes.

    Returns None when the value is empty or does not match, so callers can
    tell "no value" apart from ``"0:00 hrs"``.
    """
    if not value:
        return None
    m = _STRICT_HRS_PATTERN.match(str(value).strip())
    if not m:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


def hrs_to_hm(value: object) -> str:
    """Strip the ``hrs`` suffix: ``"4:05 hrs"`` -> ``"4:05"``.

    Non-matching input is returned unchanged, empty input as "".
    """
    if not value:
        return ""
    m = _STRICT_HRS_PATTERN.match(str(value).strip())
    if not m:
        return str(value)
    return f"{int(m.group(1))}:{m.group(2)}"


def minutes_to_hm(total_minutes: int | float | None) -> str:
    """Format minutes as ``H:MM``."""
    if total_minutes is None:
        return ""
    total = int(total_minutes)
    return f"{total // 60}:{total % 60:02d}"


def minutes_to_days_label(total_minutes: int | float | None) -> str:
    """Format minutes as whole days, e.g. ``"3 Days"``."""
    if total_minutes is None:
        return ""
    return f"{int(total_minutes) // (60 * 24)} Days"


def format_hours(hours: float) -> str:
    """Render hours back into Zoho's display form.

    ``26.0`` -> ``"1 days 02:00 hrs"``, ``4.5`` -> ``"04:30 hrs"``.
    """
    total_minutes = round(hours * 60)
    days, rem = divmod(total_minutes, 24 * 60)
    hh, mm = divmod(rem, 60)
    if days:
        return f"{days} days {hh:02d}:{mm:02d} hrs"
    return f"{hh:02d}:{mm:02d} hrs"
