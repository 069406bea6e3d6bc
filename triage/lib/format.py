from triage.core.models import Task

from . import ansi, clock
from .dates import days_until

__all__ = [
    "format_countdown",
    "format_due",
    "format_elapsed",
    "format_minutes",
    "format_recurrence",
    "format_task",
]

_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def format_elapsed(ms: int, now: int | None = None) -> str:
    """Format a timestamp as a human-readable relative string (e.g. '5m ago', '3h ago')."""
    now = now if now is not None else clock.now_ms()
    s = max(0, (now - ms) // 1000)
    if s < 60:
        return f"{s}s ago"
    m = s // 60
    if m < 60:
        return f"{m}m ago"
    h = m // 60
    if h < 24:
        return f"{h}h ago"
    d = h // 24
    if d < 7:
        return f"{d}d ago"
    return clock.from_ms(ms).strftime("%Y-%m-%d")


def format_minutes(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    h, m = divmod(minutes, 60)
    return f"{h}h{m:02d}m" if m else f"{h}h"


def format_countdown(seconds: int) -> str:
    m, s = divmod(max(0, seconds), 60)
    return f"{m:02d}:{s:02d}"


def format_due(due_ms: int, now: int | None = None) -> str:
    today = clock.from_ms(now).date() if now is not None else None
    days = days_until(due_ms, today)
    date_str = clock.from_ms(due_ms).strftime("%d/%m")
    if days < 0:
        return ansi.red(f"{date_str}!")
    if days == 0:
        return ansi.yellow(f"{date_str}·")
    return ansi.muted(f"{date_str}·")


def format_recurrence(task: Task) -> str:
    rec = task.recurrence
    if rec is None:
        return ""
    if rec.kind == "weekly" and rec.day_of_week is not None:
        return f"↻{_WEEKDAYS[rec.day_of_week % 7]}"
    if rec.kind == "monthly" and rec.day_of_month is not None:
        return f"↻{rec.day_of_month}"
    return f"↻{rec.kind}"


def format_task(task: Task, show_id: bool = False, now: int | None = None) -> str:
    """Format a task for display. Returns: [!] [due] title [#tags] [~est] [↻] [id]"""
    parts = []

    if task.priority == "high":
        parts.append(ansi.orange("!"))
    elif task.priority == "low":
        parts.append(ansi.muted("↓"))

    if task.later_due_date is not None:
        parts.append(format_due(task.later_due_date, now))

    parts.append(task.title)

    if task.tags:
        parts.extend(ansi.tag(t) for t in task.tags)

    if task.estimated_minutes:
        parts.append(ansi.muted(f"~{format_minutes(task.estimated_minutes)}"))

    if task.recurrence is not None:
        parts.append(ansi.cyan(format_recurrence(task)))

    if show_id:
        parts.append(ansi.muted(f"[{task.id[:8]}]"))

    return " ".join(parts)
