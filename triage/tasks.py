import logging
import uuid
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import cast

from fncli import UsageError, cli

from . import engine, store
from .core import actions as act
from .core.errors import TriageError
from .core.models import PRIORITIES, RECURRENCE_KINDS, Priority, Recurrence, Status, Task
from .engine import Tasks
from .lib import clock
from .lib.dates import due_ms
from .lib.errors import echo, exit_error
from .lib.format import format_task
from .lib.resolve import resolve_task, resolve_task_exact

__all__ = [
    "dispatch",
    "find_task",
    "lane",
    "load_tasks",
    "new_id",
]

logger = logging.getLogger(__name__)

_OPEN: tuple[Status, ...] = ("captured", "deferred", "active", "queued")


def new_id() -> str:
    return str(uuid.uuid4())


def load_tasks(now: int | None = None) -> Tasks:
    """Stored tasks with invariants repaired. Repairs are written back."""
    state = store.load_state()
    now = now if now is not None else clock.now_ms()
    tasks = engine.apply(state.tasks, act.Normalize(state.tasks, now))
    if tasks != state.tasks:
        logger.info("repaired stored tasks")
        store.save_state(tasks, state.settings, now=now)
    return tasks


def dispatch(*actions: act.Action, tasks: Tasks | None = None) -> Tasks:
    """Load, apply each action in turn, and persist only if something changed."""
    before = tasks if tasks is not None else load_tasks()
    after = before
    for action in actions:
        after = engine.apply(after, action)
    if after is not before:
        store.save_state(after)
    return after


def find_task(tasks: Iterable[Task], task_id: str) -> Task | None:
    return next((t for t in tasks if t.id == task_id), None)


def lane(tasks: Iterable[Task], status: Status, include_archived: bool = False) -> list[Task]:
    """Tasks with ``status`` sorted by order."""
    return sorted(
        (t for t in tasks if t.status == status and (include_archived or not t.archived)),
        key=lambda t: t.order,
    )


def _ref(ref: Sequence[str] | None, usage: str) -> str:
    item_ref = " ".join(ref) if ref else ""
    if not item_ref:
        exit_error(f"Usage: {usage}")
    return item_ref


def _say(symbol: str, task: Task | None) -> None:
    if task is not None:
        echo(f"{symbol} {format_task(task, show_id=True)}")


def _report_promotion(before: Tasks, after: Tasks) -> None:
    was = next((t.id for t in before if t.status == "active"), None)
    now_active = next((t for t in after if t.status == "active"), None)
    if now_active is not None and now_active.id != was:
        _say("→ now:", now_active)


def _move(ref: Sequence[str] | None, to: Status, symbol: str, usage: str) -> Task:
    tasks = load_tasks()
    t = resolve_task(_ref(ref, usage), tasks)
    after = dispatch(act.MoveTo(t.id, to, clock.now_ms()), tasks=tasks)
    _say(symbol, find_task(after, t.id))
    _report_promotion(tasks, after)
    return t


def _parse_priority(priority: str) -> Priority:
    value = priority.lower()
    if value not in PRIORITIES:
        raise UsageError(f"priority must be one of: {', '.join(PRIORITIES)}")
    return cast(Priority, value)


def _parse_due(due: str) -> int:
    ms = due_ms(due)
    if ms is None:
        raise UsageError(f"could not parse date '{due}'")
    return ms


def _print_lane(tasks: Tasks, status: Status, empty: str) -> None:
    items = lane(tasks, status)
    if not items:
        echo(empty)
        return
    for t in items:
        echo(f"  {format_task(t, show_id=True)}")


@cli("triage", flags={"tag": ["-t", "--tag"], "priority": ["-p", "--priority"]})
def add(title: list[str], tag: list[str] | None = None, priority: str | None = None) -> None:
    """Capture a task into the inbox"""
    title_str = _ref(title, "triage add <title>")
    now_ms = clock.now_ms()
    task_id = new_id()
    extra: list[act.Action] = [act.AddTag(task_id, t, now_ms) for t in tag or []]
    if priority:
        extra.append(act.SetPriority(task_id, _parse_priority(priority), now_ms))
    after = dispatch(act.Add(task_id, title_str, now_ms), *extra)
    _say("□", find_task(after, task_id))


@cli("triage", flags={"ref": []})
def now(ref: list[str] | None = None) -> None:
    """Focus a task, or show the current focus"""
    tasks = load_tasks()
    if not ref:
        active = next((t for t in tasks if t.status == "active"), None)
        if active is None:
            echo("nothing active")
            return
        _say("⦿", active)
        return
    t = resolve_task(" ".join(ref), tasks)
    after = dispatch(act.SetActive(t.id, clock.now_ms()), tasks=tasks)
    _say("⦿", find_task(after, t.id))


@cli("triage", name="next", flags={"ref": []})
def next_cmd(ref: list[str] | None = None) -> None:
    """Queue a task, or list the queue"""
    if not ref:
        _print_lane(load_tasks(), "queued", "queue empty")
        return
    _move(ref, "queued", "▸", "triage next <task>")


@cli("triage", flags={"ref": [], "due": ["-d", "--due"]})
def later(ref: list[str] | None = None, due: str | None = None) -> None:
    """Defer a task, optionally until a date"""
    if not ref:
        _print_lane(load_tasks(), "deferred", "nothing deferred")
        return
    tasks = load_tasks()
    t = resolve_task(" ".join(ref), tasks)
    now_ms = clock.now_ms()
    steps: list[act.Action] = [act.MoveTo(t.id, "deferred", now_ms)]
    if due:
        steps.append(act.SetLaterDue(t.id, _parse_due(due), now_ms))
    after = dispatch(*steps, tasks=tasks)
    _say("⋯", find_task(after, t.id))
    _report_promotion(tasks, after)


@cli("triage", flags={"ref": []})
def inbox(ref: list[str] | None = None) -> None:
    """Send a task back to the inbox, or list the inbox"""
    if not ref:
        _print_lane(load_tasks(), "captured", "inbox empty")
        return
    _move(ref, "captured", "□", "triage inbox <task>")


@cli("triage")
def discard(ref: list[str]) -> None:
    """Discard a task"""
    tasks = load_tasks()
    t = resolve_task_exact(_ref(ref, "triage discard <task>"), tasks)
    after = dispatch(act.MoveTo(t.id, "discarded", clock.now_ms()), tasks=tasks)
    _say("✗", find_task(after, t.id))
    _report_promotion(tasks, after)


@cli("triage")
def restore(ref: list[str]) -> None:
    """Restore a discarded task to the inbox"""
    tasks = load_tasks()
    t = resolve_task(_ref(ref, "triage restore <task>"), tasks, statuses=("discarded",))
    after = dispatch(act.RestoreDiscarded(t.id, clock.now_ms()), tasks=tasks)
    _say("□", find_task(after, t.id))


@cli("triage", flags={"ref": []})
def done(ref: list[str] | None = None) -> None:
    """Complete the active task, or the named one"""
    tasks = load_tasks()
    now_ms = clock.now_ms()
    if ref:
        t = resolve_task(" ".join(ref), tasks, statuses=_OPEN)
        action: act.Action = act.MoveTo(t.id, "completed", now_ms)
    else:
        active = next((x for x in tasks if x.status == "active"), None)
        if active is None:
            raise TriageError("nothing active to complete")
        t = active
        action = act.CompleteActive(now_ms)
    after = dispatch(action, tasks=tasks)
    _say("✓", find_task(after, t.id))
    if t.recurrence is not None:
        successor = next(
            (x for x in after if x.id not in {y.id for y in tasks} and x.title == t.title), None
        )
        _say("↻", successor)
    _report_promotion(tasks, after)


@cli("triage")
def undo(ref: list[str]) -> None:
    """Reopen a completed task in the inbox"""
    tasks = load_tasks()
    t = resolve_task(_ref(ref, "triage undo <task>"), tasks, statuses=("completed",))
    after = dispatch(act.UndoCompleted(t.id, clock.now_ms()), tasks=tasks)
    _say("□", find_task(after, t.id))


def _reorder(ref: list[str], direction: act.Direction) -> None:
    tasks = load_tasks()
    t = resolve_task(_ref(ref, f"triage {direction} <task>"), tasks, statuses=("queued",))
    after = dispatch(act.Reorder(t.id, direction, clock.now_ms()), tasks=tasks)
    if after is tasks:
        echo(f"already at the {'top' if direction == 'up' else 'bottom'}")
        return
    _print_lane(after, "queued", "queue empty")


@cli("triage")
def up(ref: list[str]) -> None:
    """Move a queued task earlier"""
    _reorder(ref, "up")


@cli("triage")
def down(ref: list[str]) -> None:
    """Move a queued task later"""
    _reorder(ref, "down")


@cli(
    "triage",
    name="set",
    flags={
        "desc": ["-d", "--desc"],
        "priority": ["-p", "--priority"],
        "estimate": ["-e", "--estimate"],
        "due": ["--due"],
    },
)
def set_cmd(
    ref: list[str],
    desc: str | None = None,
    priority: str | None = None,
    estimate: int | None = None,
    due: str | None = None,
) -> None:
    """Set description, priority, estimate or deadline on a task"""
    tasks = load_tasks()
    t = resolve_task(_ref(ref, "triage set <task> [-d desc] [-p priority] [-e minutes]"), tasks)
    now_ms = clock.now_ms()
    steps: list[act.Action] = []
    if desc is not None:
        steps.append(act.SetDescription(t.id, desc.strip() or None, now_ms))
    if priority is not None:
        steps.append(act.SetPriority(t.id, _parse_priority(priority), now_ms))
    if estimate is not None:
        if estimate < 0:
            raise UsageError("estimate must be 0 (clear) or more minutes")
        steps.append(act.SetEstimate(t.id, estimate or None, now_ms))
    if due is not None:
        deadline = None if due.lower() in ("none", "off") else _parse_due(due)
        steps.append(act.SetLaterDue(t.id, deadline, now_ms))
    if not steps:
        raise UsageError("nothing to set: use -d, -p, -e or --due")
    after = dispatch(*steps, tasks=tasks)
    _say("✎", find_task(after, t.id))


def _parse_recurrence(kind: str, day: int | None) -> Recurrence | None:
    kind = kind.lower()
    if kind in ("off", "none"):
        return None
    if kind not in RECURRENCE_KINDS:
        raise UsageError(f"recurrence must be one of: {', '.join(RECURRENCE_KINDS)}, off")
    if kind == "weekly":
        if day is not None and not 0 <= day <= 6:
            raise UsageError("weekly day must be 0 (sun) to 6 (sat)")
        return Recurrence(kind="weekly", day_of_week=day)
    if kind == "monthly":
        if day is not None and not 1 <= day <= 31:
            raise UsageError("monthly day must be 1 to 31")
        return Recurrence(kind="monthly", day_of_month=day)
    return Recurrence(kind="daily")


@cli("triage", flags={"day": ["--day"]})
def repeat(ref: str, kind: str, day: int | None = None) -> None:
    """Make a task recur (daily, weekly, monthly, off)"""
    tasks = load_tasks()
    t = resolve_task(ref, tasks)
    recurrence = _parse_recurrence(kind, day)
    after = dispatch(act.SetRecurrence(t.id, recurrence, clock.now_ms()), tasks=tasks)
    _say("↻" if recurrence else "□", find_task(after, t.id))


@cli("triage")
def archive(ref: list[str]) -> None:
    """Hide a task from lanes and stats"""
    tasks = load_tasks()
    t = resolve_task_exact(_ref(ref, "triage archive <task>"), tasks)
    dispatch(act.Archive(t.id, clock.now_ms()), tasks=tasks)
    echo(f"▣ {t.title} archived")


@cli("triage")
def unarchive(ref: list[str]) -> None:
    """Bring an archived task back"""
    tasks = load_tasks()
    t = resolve_task(_ref(ref, "triage unarchive <task>"), tasks, archived=True)
    after = dispatch(act.RestoreArchive(t.id, clock.now_ms()), tasks=tasks)
    _say("□", find_task(after, t.id))


@cli("triage", flags={"out": ["-o", "--out"]})
def export(out: str | None = None) -> None:
    """Write stored state as JSON"""
    text = store.export_json()
    if text is None:
        raise TriageError("nothing to export yet")
    if out is None:
        echo(text.rstrip("\n"))
        return
    Path(out).expanduser().write_text(text, encoding="utf-8")
    echo(f"exported to {out}")


@cli("triage", name="import")
def import_cmd(path: str) -> None:
    """Replace all tasks with an exported JSON file"""
    from .backup import run_backup

    src = Path(path).expanduser()
    if not src.exists():
        raise TriageError(f"no such file: {path}")
    imported = store.parse_import(src.read_text(encoding="utf-8"))
    now_ms = clock.now_ms()
    tasks = engine.apply((), act.Normalize(imported, now_ms))
    if store.export_json() is not None:
        run_backup()
    store.save_state(tasks, now=now_ms)
    logger.info("imported %d task(s) from %s", len(tasks), src)
    echo(f"imported {len(tasks)} tasks")
