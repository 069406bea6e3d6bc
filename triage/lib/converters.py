from collections.abc import Mapping
from typing import Any, cast

from triage.core.models import Priority, Recurrence, RecurrenceKind, Settings, Status, Task

TaskRecord = dict[str, Any]

# persisted camelCase key -> Task attribute, for the optional fields
_OPTIONAL_FIELDS: dict[str, str] = {
    "doneAt": "done_at",
    "description": "description",
    "estimatedMinutes": "estimated_minutes",
    "actualMinutes": "actual_minutes",
    "startedAt": "started_at",
    "completedAtHour": "completed_at_hour",
    "dayOfWeek": "day_of_week",
    "archivedAt": "archived_at",
    "laterDueDate": "later_due_date",
}

RECORD_KEYS = frozenset(
    {
        "id",
        "title",
        "status",
        "createdAt",
        "updatedAt",
        "order",
        "priority",
        "tags",
        "recurrence",
        *_OPTIONAL_FIELDS,
    }
)


def _int_or_none(val) -> int | None:
    """Coerce a stored number to int; JSON may hand back floats."""
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return None
    return int(val)


def record_to_recurrence(val) -> Recurrence | None:
    if not isinstance(val, Mapping) or val.get("type") not in ("daily", "weekly", "monthly"):
        return None
    return Recurrence(
        kind=cast(RecurrenceKind, val["type"]),
        day_of_week=_int_or_none(val.get("dayOfWeek")),
        day_of_month=_int_or_none(val.get("dayOfMonth")),
    )


def recurrence_to_record(recurrence: Recurrence) -> dict[str, Any]:
    record: dict[str, Any] = {"type": recurrence.kind}
    if recurrence.day_of_week is not None:
        record["dayOfWeek"] = recurrence.day_of_week
    if recurrence.day_of_month is not None:
        record["dayOfMonth"] = recurrence.day_of_month
    return record


def record_to_task(raw: Mapping[str, Any]) -> Task:
    """
    Converts a persisted task record into a Task.
    Missing priority/tags stay None so Normalize can fill them.
    """
    tags = raw.get("tags")
    optional: dict[str, Any] = {
        attr: _int_or_none(raw.get(key))
        for key, attr in _OPTIONAL_FIELDS.items()
        if attr != "description"
    }
    description = raw.get("description")
    optional["description"] = description if isinstance(description, str) else None
    return Task(
        id=cast(str, raw["id"]),
        title=cast(str, raw["title"]),
        status=cast(Status, raw.get("status", "captured")),
        created_at=_int_or_none(raw.get("createdAt")) or 0,
        updated_at=_int_or_none(raw.get("updatedAt")) or 0,
        order=_int_or_none(raw.get("order")) or 0,
        priority=cast(Priority, raw["priority"]) if raw.get("priority") else None,
        tags=tuple(str(t) for t in tags) if isinstance(tags, list) else None,
        recurrence=record_to_recurrence(raw.get("recurrence")),
        **optional,
    )


def task_to_record(task: Task) -> TaskRecord:
    """Serialise a Task to its persisted camelCase record, omitting unset fields."""
    record: TaskRecord = {
        "id": task.id,
        "title": task.title,
        "status": task.status,
        "createdAt": task.created_at,
        "updatedAt": task.updated_at,
        "order": task.order,
        "priority": task.priority or "normal",
        "tags": list(task.tags or ()),
    }
    for key, attr in _OPTIONAL_FIELDS.items():
        val = getattr(task, attr)
        if val is not None:
            record[key] = val
    if task.recurrence is not None:
        record["recurrence"] = recurrence_to_record(task.recurrence)
    return record


def record_to_settings(raw) -> Settings:
    defaults = Settings()
    if not isinstance(raw, Mapping):
        return defaults
    pomodoro = _int_or_none(raw.get("pomodoroMinutes"))
    goal = _int_or_none(raw.get("dailyGoal"))
    enable_ai = raw.get("enableAI")
    return Settings(
        pomodoro_minutes=pomodoro if pomodoro is not None else defaults.pomodoro_minutes,
        daily_goal=goal if goal is not None else defaults.daily_goal,
        enable_ai=enable_ai if isinstance(enable_ai, bool) else defaults.enable_ai,
    )


def settings_to_record(settings: Settings) -> dict[str, Any]:
    return {
        "pomodoroMinutes": settings.pomodoro_minutes,
        "dailyGoal": settings.daily_goal,
        "enableAI": settings.enable_ai,
    }
