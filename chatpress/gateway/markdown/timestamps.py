"""Server-side text for <t:...> timestamp markers.

The text is a UTC, en-US fallback only: static/main.js re-renders every <time>
element in the viewer's own zone and locale.
"""

from datetime import datetime, timezone

_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_RELATIVE_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def to_datetime(seconds: int) -> datetime | None:
    """UTC datetime for unix `seconds`, or None if the platform can't represent it."""
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def iso_instant(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _clock(dt: datetime, *, seconds: bool) -> str:
    hour = dt.hour % 12 or 12
    text = f"{hour}:{dt.minute:02d}"
    if seconds:
        text += f":{dt.second:02d}"
    return f"{text} {'AM' if dt.hour < 12 else 'PM'}"


def _short_date(dt: datetime) -> str:
    return f"{dt.month}/{dt.day}/{dt.year % 100:02d}"


def _long_date(dt: datetime) -> str:
    return f"{_MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def medium_date(dt: datetime) -> str:
    """Byline date, e.g. Mar 14, 2024."""
    return f"{_MONTHS[dt.month - 1][:3]} {dt.day}, {dt.year}"


def _relative(dt: datetime, now: datetime) -> str:
    delta = int((dt - now).total_seconds())
    span = abs(delta)
    if span < 1:
        return "now"
    for unit, size in _RELATIVE_UNITS:
        if span >= size:
            count = span // size
            label = f"{count} {unit}{'' if count == 1 else 's'}"
            return f"in {label}" if delta > 0 else f"{label} ago"
    return "now"


def format_timestamp(dt: datetime, code: str, *, now: datetime | None = None) -> str | None:
    """Render `dt` (UTC) in one of the seven marker styles. None for unknown codes."""
    dt = dt.astimezone(timezone.utc)
    match code:
        case "R":
            return _relative(dt, now or datetime.now(timezone.utc))
        case "d":
            return _short_date(dt)
        case "D":
            return _long_date(dt)
        case "t":
            return _clock(dt, seconds=False)
        case "T":
            return _clock(dt, seconds=True)
        case "f":
            return f"{_long_date(dt)} {_clock(dt, seconds=False)}"
        case "F":
            return f"{_WEEKDAYS[dt.weekday()]}, {_long_date(dt)} {_clock(dt, seconds=False)}"
        case _:
            return None
