import dataclasses
from typing import Literal

Status = Literal["captured", "deferred", "discarded", "active", "queued", "completed"]
Priority = Literal["high", "normal", "low"]
RecurrenceKind = Literal["daily", "weekly", "monthly"]

STATUSES: tuple[Status, ...] = ("captured", "deferred", "discarded", "active", "queued", "completed")
PRIORITIES: tuple[Priority, ...] = ("high", "normal", "low")
RECURRENCE_KINDS: tuple[RecurrenceKind, ...] = ("daily", "weekly", "monthly")


@dataclasses.dataclass(frozen=True)
class Recurrence:
    kind: RecurrenceKind
    day_of_week: int | None = None
    day_of_month: int | None = None


@dataclasses.dataclass(frozen=True)
class Task:
    id: str
    title: str
    status: Status
    created_at: int
    updated_at: int
    order: int
    done_at: int | None = None
    description: str | None = None
    priority: Priority | None = "normal"
    tags: tuple[str, ...] | None = ()
    estimated_minutes: int | None = None
    actual_minutes: int | None = None
    started_at: int | None = None
    completed_at_hour: int | None = None
    day_of_week: int | None = None
    recurrence: Recurrence | None = None
    archived_at: int | None = None
    later_due_date: int | None = None

    @property
    def archived(self) -> bool:
        return self.archived_at is not None


@dataclasses.dataclass(frozen=True)
class Settings:
    pomodoro_minutes: int = 25
    daily_goal: int = 0
    enable_ai: bool = False
