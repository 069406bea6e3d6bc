"""Read-only analytics over the task collection.

Every function takes the collection and an explicit ``now`` (epoch ms) so
results are reproducible; local-time day boundaries come from ``lib.clock``.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal, cast

from fncli import UsageError, cli

from . import config
from .core.models import Settings, Task
from .lib import ansi, clock
from .lib.errors import echo
from .lib.format import format_minutes, format_task

__all__ = [
    "DayCount",
    "GoalProgress",
    "TimePatterns",
    "daily_goal",
    "history",
    "overdue_deferred",
    "recently_archived",
    "stale_tasks",
    "time_patterns",
    "weekly_counts",
]

DAY_MS = 24 * 60 * 60 * 1000

Window = Literal["today", "7d", "all"]
WINDOWS: tuple[Window, ...] = ("today", "7d", "all")

SLOTS = ("morning", "afternoon", "evening", "night")
_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


@dataclass(frozen=True)
class GoalProgress:
    done_today: int
    goal: int

    @property
    def achieved(self) -> bool:
        return self.done_today >= self.goal


@dataclass(frozen=True)
class DayCount:
    day: date
    count: int


@dataclass(frozen=True)
class TimePatterns:
    grid: tuple[tuple[int, ...], ...]
    best_slot: str | None


def _completed(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.status == "completed" and t.done_at is not None]


def _day_start(now: int) -> int:
    return clock.to_ms(clock.from_ms(now).date())


def _js_round(value: float) -> int:
    return math.floor(value + 0.5)


def daily_goal(tasks: Iterable[Task], settings: Settings, now: int) -> GoalProgress:
    """Completions today against the goal; goal 0 means the 7-day average."""
    done = _completed(tasks)
    today = clock.from_ms(now).date()
    done_today = sum(1 for t in done if clock.from_ms(t.done_at or 0).date() == today)

    goal = settings.daily_goal
    if goal == 0:
        since = clock.to_ms(today - timedelta(days=6))
        recent = sum(1 for t in done if (t.done_at or 0) >= since)
        goal = max(1, _js_round(recent / 7))
    return GoalProgress(done_today=done_today, goal=goal)


def weekly_counts(tasks: Iterable[Task], now: int) -> list[DayCount]:
    """Completions per local day over the last 7 days, oldest first."""
    done = _completed(tasks)
    today = clock.from_ms(now).date()
    counts = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        start = clock.to_ms(day)
        end = clock.to_ms(day + timedelta(days=1))
        counts.append(DayCount(day, sum(1 for t in done if start <= (t.done_at or 0) < end)))
    return counts


def _slot(hour: int) -> int:
    if 5 <= hour < 12:
        return 0
    if 12 <= hour < 17:
        return 1
    if 17 <= hour < 21:
        return 2
    return 3


def time_patterns(tasks: Iterable[Task]) -> TimePatterns:
    grid = [[0] * len(SLOTS) for _ in range(7)]
    for t in _completed(tasks):
        if t.completed_at_hour is None or t.day_of_week is None:
            continue
        grid[t.day_of_week % 7][_slot(t.completed_at_hour)] += 1

    totals = [sum(row[s] for row in grid) for s in range(len(SLOTS))]
    best = max(range(len(SLOTS)), key=lambda s: totals[s])
    return TimePatterns(
        grid=tuple(tuple(row) for row in grid),
        best_slot=SLOTS[best] if totals[best] > 0 else None,
    )


def stale_tasks(
    tasks: Iterable[Task],
    now: int,
    captured_days: int | None = None,
    deferred_days: int | None = None,
) -> list[Task]:
    """Unarchived inbox and deferred tasks that have sat untouched too long."""
    default_captured, default_deferred = config.get_stale_days()
    limits = {
        "captured": (captured_days or default_captured) * DAY_MS,
        "deferred": (deferred_days or default_deferred) * DAY_MS,
    }
    return [
        t
        for t in tasks
        if not t.archived and t.status in limits and now - t.created_at > limits[t.status]
    ]


def history(tasks: Iterable[Task], now: int, window: Window = "7d") -> list[Task]:
    """Completed tasks, most recent first."""
    done = sorted(_completed(tasks), key=lambda t: t.done_at or 0, reverse=True)
    if window == "all":
        return done
    if window == "today":
        today = clock.from_ms(now).date()
        return [t for t in done if clock.from_ms(t.done_at or 0).date() == today]
    since = now - 7 * DAY_MS
    return [t for t in done if (t.done_at or 0) >= since]


def recently_archived(tasks: Iterable[Task], now: int, days: int = 30) -> list[Task]:
    archived = [t for t in tasks if t.archived_at is not None and now - t.archived_at <= days * DAY_MS]
    return sorted(archived, key=lambda t: t.archived_at or 0, reverse=True)


def overdue_deferred(tasks: Iterable[Task], now: int) -> list[Task]:
    """Deferred tasks whose deadline day has already ended."""
    today_start = _day_start(now)
    return [
        t
        for t in tasks
        if t.status == "deferred"
        and not t.archived
        and t.later_due_date is not None
        and t.later_due_date < today_start
    ]


# ── cli ──────────────────────────────────────────────────────────────────────


def _bar(count: int, peak: int, width: int = 20) -> str:
    if peak == 0:
        return ""
    return "█" * max(1 if count else 0, round(count / peak * width))


@cli("triage")
def stats() -> None:
    """Daily goal, last 7 days, and stale tasks"""
    from .store import load_settings
    from .tasks import load_tasks

    now = clock.now_ms()
    tasks = load_tasks(now)
    progress = daily_goal(tasks, load_settings(), now)
    mark = ansi.green("✓") if progress.achieved else " "
    echo(f"today: {progress.done_today}/{progress.goal} {mark}")

    week = weekly_counts(tasks, now)
    peak = max(d.count for d in week)
    echo(f"7d:    {sum(d.count for d in week)}")
    for d in week:
        echo(f"  {d.day:%a %d/%m}  {d.count:>2} {ansi.green(_bar(d.count, peak))}")

    done = _completed(tasks)
    timed = [t.actual_minutes for t in done if t.actual_minutes]
    if timed:
        echo(f"focus: {format_minutes(sum(timed))} over {len(timed)} tasks")

    stale = stale_tasks(tasks, now)
    if stale:
        echo("")
        echo(ansi.yellow(f"stale ({len(stale)}):"))
        for t in stale:
            days = (now - t.created_at) // DAY_MS
            echo(f"  {format_task(t, show_id=True)} {ansi.muted(f'{days}d')}")

    overdue = overdue_deferred(tasks, now)
    if overdue:
        echo("")
        echo(ansi.red(f"overdue ({len(overdue)}):"))
        for t in overdue:
            echo(f"  {format_task(t, show_id=True, now=now)}")


@cli(
    "triage",
    name="history",
    flags={"window": ["-w", "--window"], "archived": ["-a", "--archived"]},
)
def history_cmd(window: str = "7d", archived: bool = False) -> None:
    """Completed tasks (today, 7d, all) or recently archived"""
    from .tasks import load_tasks

    now = clock.now_ms()
    tasks = load_tasks(now)
    if archived:
        items = recently_archived(tasks, now)
        if not items:
            echo("nothing archived in the last 30 days")
            return
        for t in items:
            echo(f"  {clock.from_ms(t.archived_at or 0):%Y-%m-%d}  {format_task(t, show_id=True)}")
        return

    if window not in WINDOWS:
        raise UsageError(f"window must be one of: {', '.join(WINDOWS)}")
    items = history(tasks, now, cast(Window, window))
    if not items:
        echo("nothing completed")
        return
    for t in items:
        spent = ansi.muted(f" {format_minutes(t.actual_minutes)}") if t.actual_minutes else ""
        echo(f"  {clock.from_ms(t.done_at or 0):%m-%d %H:%M}  ✓ {format_task(t)}{spent}")


@cli("triage")
def patterns() -> None:
    """When you get things done, by weekday and time of day"""
    from .tasks import load_tasks

    result = time_patterns(load_tasks())
    if result.best_slot is None:
        echo("no completions with timing yet")
        return
    echo("       " + " ".join(f"{s[:4]:>5}" for s in SLOTS))
    for day, row in zip(_WEEKDAYS, result.grid, strict=True):
        echo(f"  {day}  " + " ".join(f"{c:>5}" for c in row))
    echo(f"best: {result.best_slot}")
