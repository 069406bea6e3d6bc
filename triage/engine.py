"""Task lifecycle engine.

``apply(tasks, action)`` is a pure transition function over a tuple of tasks.
It never performs I/O and never reads a clock: the ``now`` carried by each
action is the only time source. Any action that changes nothing returns the
very tuple it was given, so callers can use ``is`` to skip persisting.

Cross-task invariants held after every transition:

- at most one task is ``active``;
- when nothing is active and something is ``queued``, the lowest-order queued
  task is promoted to ``active``;
- ``done_at`` is set exactly on ``completed`` tasks; Normalize repairs
  collections that break this.
"""

import dataclasses
import math
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from .core import actions as act
from .core.models import Status, Task
from .lib.clock import from_ms

__all__ = ["Tasks", "apply"]

Tasks = tuple[Task, ...]

_MS_PER_MINUTE = 60_000


# ── invariant helpers ────────────────────────────────────────────────────────


def _max_order(tasks: Iterable[Task], status: Status) -> int:
    return max((t.order for t in tasks if t.status == status), default=0)


def _find(tasks: Tasks, task_id: str) -> Task | None:
    return next((t for t in tasks if t.id == task_id), None)


def _swap_in(tasks: Tasks, updated: Task) -> Tasks:
    return tuple(updated if t.id == updated.id else t for t in tasks)


def _ensure_defaults(task: Task) -> Task:
    tags = tuple(dict.fromkeys(task.tags or ()))
    done_at = task.done_at
    if task.status != "completed":
        done_at = None
    elif done_at is None:
        done_at = task.updated_at
    if task.priority is not None and task.tags == tags and task.done_at == done_at:
        return task
    return dataclasses.replace(
        task, priority=task.priority or "normal", tags=tags, done_at=done_at
    )


def _ensure_single_active(tasks: Tasks, now: int, keep_id: str | None = None) -> Tasks:
    actives = [t for t in tasks if t.status == "active"]
    if len(actives) <= 1:
        return tasks

    if keep_id is None or all(t.id != keep_id for t in actives):
        # sorted() is stable, so among equal updated_at the later one wins
        keep_id = sorted(actives, key=lambda t: t.updated_at)[-1].id

    next_order = _max_order(tasks, "queued")
    result = []
    for t in tasks:
        if t.status == "active" and t.id != keep_id:
            next_order += 1
            t = dataclasses.replace(
                t, status="queued", order=next_order, done_at=None, updated_at=now
            )
        result.append(t)
    return tuple(result)


def _promote_if_empty(tasks: Tasks, now: int) -> Tasks:
    if any(t.status == "active" for t in tasks):
        return tasks
    queued = [t for t in tasks if t.status == "queued"]
    if not queued:
        return tasks
    head = min(queued, key=lambda t: t.order)
    promoted = dataclasses.replace(
        head, status="active", order=0, started_at=now, done_at=None, updated_at=now
    )
    return _swap_in(tasks, promoted)


# ── completion / recurrence ──────────────────────────────────────────────────


def _elapsed_minutes(started_at: int, done_at: int) -> int:
    # half-minutes round up
    return math.floor((done_at - started_at) / _MS_PER_MINUTE + 0.5)


def _complete(task: Task, now: int) -> Task:
    done = from_ms(now)
    actual = task.actual_minutes
    if task.started_at is not None:
        actual = _elapsed_minutes(task.started_at, now)
    return dataclasses.replace(
        task,
        status="completed",
        done_at=now,
        updated_at=now,
        actual_minutes=actual,
        completed_at_hour=done.hour,
        day_of_week=(done.weekday() + 1) % 7,
    )


def _recurrence_id(tasks: Tasks, now: int) -> str:
    taken = {t.id for t in tasks}
    while True:
        candidate = f"rec_{now}_{uuid.uuid4().hex[:12]}"
        if candidate not in taken:
            return candidate


def _regenerate(task: Task, tasks: Tasks, now: int) -> Task:
    return dataclasses.replace(
        task,
        id=_recurrence_id(tasks, now),
        status="captured",
        order=0,
        created_at=now,
        updated_at=now,
        done_at=None,
        started_at=None,
        actual_minutes=None,
        completed_at_hour=None,
        day_of_week=None,
        archived_at=None,
    )


def _finish(tasks: Tasks, target: Task, now: int) -> Tasks:
    """Complete ``target`` in place, appending its successor when it recurs."""
    result = _swap_in(tasks, _complete(target, now))
    if target.recurrence is not None:
        result = (*result, _regenerate(target, result, now))
    return result


# ── transitions ──────────────────────────────────────────────────────────────


def _normalize(tasks: Tasks, action: act.Normalize) -> Tasks:
    repaired = tuple(_ensure_defaults(t) for t in action.tasks)
    repaired = _ensure_single_active(repaired, action.now)
    return _promote_if_empty(repaired, action.now)


def _add(tasks: Tasks, action: act.Add) -> Tasks:
    title = action.title.strip()
    if not title:
        return tasks
    task = Task(
        id=action.id,
        title=title,
        status="captured",
        created_at=action.now,
        updated_at=action.now,
        order=_max_order(tasks, "captured") + 1,
    )
    return (*tasks, task)


def _move_to(tasks: Tasks, action: act.MoveTo) -> Tasks:
    target = _find(tasks, action.id)
    if target is None:
        return tasks

    to, now = action.status, action.now
    order = target.order if to == target.status else _max_order(tasks, to) + 1

    if to == "completed":
        result = _finish(tasks, dataclasses.replace(target, order=order), now)
    else:
        moved = dataclasses.replace(target, status=to, order=order, done_at=None, updated_at=now)
        if to == "active":
            moved = dataclasses.replace(moved, order=0, started_at=now)
        result = _swap_in(tasks, moved)

    result = _ensure_single_active(result, now, keep_id=target.id if to == "active" else None)
    return _promote_if_empty(result, now)


def _set_active(tasks: Tasks, action: act.SetActive) -> Tasks:
    if _find(tasks, action.id) is None:
        return tasks

    now = action.now
    next_order = _max_order(tasks, "queued")
    result = []
    for t in tasks:
        if t.id == action.id:
            t = dataclasses.replace(
                t, status="active", order=0, started_at=now, done_at=None, updated_at=now
            )
        elif t.status == "active":
            next_order += 1
            t = dataclasses.replace(
                t, status="queued", order=next_order, done_at=None, updated_at=now
            )
        result.append(t)
    return tuple(result)


def _complete_active(tasks: Tasks, action: act.CompleteActive) -> Tasks:
    active = next((t for t in tasks if t.status == "active"), None)
    if active is None:
        return tasks
    return _promote_if_empty(_finish(tasks, active, action.now), action.now)


def _reorder(tasks: Tasks, action: act.Reorder) -> Tasks:
    lane = sorted((t for t in tasks if t.status == "queued"), key=lambda t: t.order)
    idx = next((i for i, t in enumerate(lane) if t.id == action.id), None)
    if idx is None:
        return tasks

    other = idx - 1 if action.direction == "up" else idx + 1
    if other < 0 or other >= len(lane):
        return tasks

    a, b = lane[idx], lane[other]
    swapped = {
        a.id: dataclasses.replace(a, order=b.order, updated_at=action.now),
        b.id: dataclasses.replace(b, order=a.order, updated_at=action.now),
    }
    return tuple(swapped.get(t.id, t) for t in tasks)


def _back_to_captured(tasks: Tasks, task_id: str, source: Status, now: int) -> Tasks:
    target = _find(tasks, task_id)
    if target is None or target.status != source:
        return tasks
    restored = dataclasses.replace(
        target,
        status="captured",
        order=_max_order(tasks, "captured") + 1,
        done_at=None,
        updated_at=now,
    )
    return _swap_in(tasks, restored)


def _restore_discarded(tasks: Tasks, action: act.RestoreDiscarded) -> Tasks:
    return _back_to_captured(tasks, action.id, "discarded", action.now)


def _undo_completed(tasks: Tasks, action: act.UndoCompleted) -> Tasks:
    return _back_to_captured(tasks, action.id, "completed", action.now)


# ── field setters ────────────────────────────────────────────────────────────


def _update(tasks: Tasks, task_id: str, now: int, **changes: Any) -> Tasks:
    target = _find(tasks, task_id)
    if target is None:
        return tasks
    return _swap_in(tasks, dataclasses.replace(target, **changes, updated_at=now))


def _set_description(tasks: Tasks, action: act.SetDescription) -> Tasks:
    return _update(tasks, action.id, action.now, description=action.description)


def _set_priority(tasks: Tasks, action: act.SetPriority) -> Tasks:
    return _update(tasks, action.id, action.now, priority=action.priority)


def _set_estimate(tasks: Tasks, action: act.SetEstimate) -> Tasks:
    return _update(tasks, action.id, action.now, estimated_minutes=action.minutes)


def _set_later_due(tasks: Tasks, action: act.SetLaterDue) -> Tasks:
    return _update(tasks, action.id, action.now, later_due_date=action.due)


def _set_recurrence(tasks: Tasks, action: act.SetRecurrence) -> Tasks:
    return _update(tasks, action.id, action.now, recurrence=action.recurrence)


def _add_tag(tasks: Tasks, action: act.AddTag) -> Tasks:
    tag = action.tag.strip()
    target = _find(tasks, action.id)
    if target is None or not tag:
        return tasks
    current = target.tags or ()
    if tag in current:
        return tasks
    return _update(tasks, action.id, action.now, tags=(*current, tag))


def _remove_tag(tasks: Tasks, action: act.RemoveTag) -> Tasks:
    target = _find(tasks, action.id)
    if target is None or action.tag not in (target.tags or ()):
        return tasks
    remaining = tuple(t for t in target.tags or () if t != action.tag)
    return _update(tasks, action.id, action.now, tags=remaining)


def _archive(tasks: Tasks, action: act.Archive) -> Tasks:
    return _update(tasks, action.id, action.now, archived_at=action.now)


def _restore_archive(tasks: Tasks, action: act.RestoreArchive) -> Tasks:
    target = _find(tasks, action.id)
    if target is None or target.archived_at is None:
        return tasks
    return _update(tasks, action.id, action.now, archived_at=None)


_HANDLERS: dict[type, Callable[[Tasks, Any], Tasks]] = {
    act.Normalize: _normalize,
    act.Add: _add,
    act.MoveTo: _move_to,
    act.SetActive: _set_active,
    act.CompleteActive: _complete_active,
    act.Reorder: _reorder,
    act.RestoreDiscarded: _restore_discarded,
    act.UndoCompleted: _undo_completed,
    act.SetDescription: _set_description,
    act.SetPriority: _set_priority,
    act.AddTag: _add_tag,
    act.RemoveTag: _remove_tag,
    act.SetEstimate: _set_estimate,
    act.SetLaterDue: _set_later_due,
    act.SetRecurrence: _set_recurrence,
    act.Archive: _archive,
    act.RestoreArchive: _restore_archive,
}


def apply(tasks: Tasks, action: act.Action) -> Tasks:
    """Return the collection that results from applying ``action`` to ``tasks``."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return tasks
    return handler(tasks, action)
