"""Action vocabulary accepted by ``triage.engine.apply``.

Every action carries the ``now`` timestamp (epoch milliseconds) it should be
evaluated at; the engine never reads a clock of its own.
"""

import dataclasses
from collections.abc import Sequence
from typing import Literal

from .models import Priority, Recurrence, Status, Task

Direction = Literal["up", "down"]


@dataclasses.dataclass(frozen=True)
class Normalize:
    tasks: Sequence[Task]
    now: int


@dataclasses.dataclass(frozen=True)
class Add:
    id: str
    title: str
    now: int


@dataclasses.dataclass(frozen=True)
class MoveTo:
    id: str
    status: Status
    now: int


@dataclasses.dataclass(frozen=True)
class SetActive:
    id: str
    now: int


@dataclasses.dataclass(frozen=True)
class CompleteActive:
    now: int


@dataclasses.dataclass(frozen=True)
class Reorder:
    id: str
    direction: Direction
    now: int


@dataclasses.dataclass(frozen=True)
class RestoreDiscarded:
    id: str
    now: int


@dataclasses.dataclass(frozen=True)
class UndoCompleted:
    id: str
    now: int


@dataclasses.dataclass(frozen=True)
class SetDescription:
    id: str
    description: str | None
    now: int


@dataclasses.dataclass(frozen=True)
class SetPriority:
    id: str
    priority: Priority
    now: int


@dataclasses.dataclass(frozen=True)
class AddTag:
    id: str
    tag: str
    now: int


@dataclasses.dataclass(frozen=True)
class RemoveTag:
    id: str
    tag: str
    now: int


@dataclasses.dataclass(frozen=True)
class SetEstimate:
    id: str
    minutes: int | None
    now: int


@dataclasses.dataclass(frozen=True)
class SetLaterDue:
    id: str
    due: int | None
    now: int


@dataclasses.dataclass(frozen=True)
class SetRecurrence:
    id: str
    recurrence: Recurrence | None
    now: int


@dataclasses.dataclass(frozen=True)
class Archive:
    id: str
    now: int


@dataclasses.dataclass(frozen=True)
class RestoreArchive:
    id: str
    now: int


Action = (
    Normalize
    | Add
    | MoveTo
    | SetActive
    | CompleteActive
    | Reorder
    | RestoreDiscarded
    | UndoCompleted
    | SetDescription
    | SetPriority
    | AddTag
    | RemoveTag
    | SetEstimate
    | SetLaterDue
    | SetRecurrence
    | Archive
    | RestoreArchive
)
