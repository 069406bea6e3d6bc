import re
from datetime import date, datetime, timedelta

from dateutil import parser as dateutil_parser
from dateutil.parser import ParserError

from . import clock

_DAY_ALIASES = {
    "monday": "mon",
    "tuesday": "tue",
    "wednesday": "wed",
    "thursday": "thu",
    "friday": "fri",
    "saturday": "sat",
    "sunday": "sun",
}
_DAY_MAP = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}
_RELATIVE_RE = re.compile(r"^\+?(\d+)([dw])$")


def parse_due_date(due_str: str, today: date | None = None) -> date | None:
    """Parses a due date string (e.g., 'today', 'tomorrow', 'mon', '+3d', 'YYYY-MM-DD')."""
    due_str_lower = due_str.strip().lower()
    today = today if today is not None else clock.today()

    if due_str_lower == "today":
        return today
    if due_str_lower == "tomorrow":
        return today + timedelta(days=1)

    relative = _RELATIVE_RE.match(due_str_lower)
    if relative:
        n, unit = int(relative.group(1)), relative.group(2)
        return today + timedelta(days=n * 7 if unit == "w" else n)

    due_str_lower = _DAY_ALIASES.get(due_str_lower, due_str_lower)
    if due_str_lower in _DAY_MAP:
        days_ahead = (_DAY_MAP[due_str_lower] - today.weekday() + 7) % 7
        return today + timedelta(days=days_ahead or 7)

    if re.match(r"^\d{1,2}:\d{2}$", due_str_lower):
        return None
    try:
        return dateutil_parser.parse(
            due_str, default=datetime(today.year, today.month, today.day)
        ).date()
    except (ParserError, ValueError, OverflowError):
        return None


def due_ms(due_str: str, today: date | None = None) -> int | None:
    """Deadline as epoch ms at local midnight of the parsed day."""
    due = parse_due_date(due_str, today)
    return clock.to_ms(due) if due else None


def days_until(ms: int, today: date | None = None) -> int:
    today = today if today is not None else clock.today()
    return (clock.from_ms(ms).date() - today).days
