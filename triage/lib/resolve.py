from collections.abc import Callable, Iterable, Sequence

from triage.core.errors import NotFoundError
from triage.core.models import Status, Task

from .fuzzy import find_in_pool, find_in_pool_exact

__all__ = ["resolve_task", "resolve_task_exact"]


def _pool(tasks: Iterable[Task], statuses: Sequence[Status] | None, archived: bool) -> list[Task]:
    return [
        t
        for t in tasks
        if (statuses is None or t.status in statuses) and t.archived == archived
    ]


def _resolve(
    ref: str,
    tasks: Iterable[Task],
    statuses: Sequence[Status] | None,
    archived: bool,
    finder: Callable[[str, Sequence[Task]], Task | None],
) -> Task:
    task = finder(ref, _pool(tasks, statuses, archived))
    if task is None:
        raise NotFoundError(f"no task found: '{ref}'")
    return task


def resolve_task(
    ref: str,
    tasks: Iterable[Task],
    statuses: Sequence[Status] | None = None,
    archived: bool = False,
) -> Task:
    """Find a task by id prefix, title substring, then fuzzy title."""
    return _resolve(ref, tasks, statuses, archived, find_in_pool)


def resolve_task_exact(
    ref: str,
    tasks: Iterable[Task],
    statuses: Sequence[Status] | None = None,
    archived: bool = False,
) -> Task:
    """Like resolve_task but no fuzzy matching. Used for destructive commands."""
    return _resolve(ref, tasks, statuses, archived, find_in_pool_exact)
