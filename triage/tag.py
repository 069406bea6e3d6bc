from collections import Counter
from collections.abc import Iterable

from fncli import cli

from .core import actions as act
from .core.models import Task
from .lib import ansi, clock
from .lib.errors import echo

__all__ = [
    "tag_counts",
    "tasks_with_tag",
]


def tasks_with_tag(tasks: Iterable[Task], tag: str) -> list[Task]:
    return [t for t in tasks if tag in (t.tags or ())]


def tag_counts(tasks: Iterable[Task]) -> Counter[str]:
    """Tag usage across unarchived tasks."""
    return Counter(tag for t in tasks if not t.archived for tag in t.tags or ())


@cli("triage tag", name="add")
def tag_add(ref: str, tag_name: str) -> None:
    """Add tag to task"""
    from .lib.resolve import resolve_task_exact
    from .tasks import dispatch, load_tasks

    tasks = load_tasks()
    task = resolve_task_exact(ref, tasks)
    dispatch(act.AddTag(task.id, tag_name, clock.now_ms()), tasks=tasks)
    echo(f"{task.title} {ansi.tag(tag_name.strip())}")


@cli("triage tag", name="rm")
def tag_rm(ref: str, tag_name: str) -> None:
    """Remove tag from task"""
    from .lib.resolve import resolve_task_exact
    from .tasks import dispatch, load_tasks

    tasks = load_tasks()
    task = resolve_task_exact(ref, tasks)
    dispatch(act.RemoveTag(task.id, tag_name, clock.now_ms()), tasks=tasks)
    echo(f"{task.title} ← {ansi.tag(tag_name)}")


@cli("triage", flags={"tag_name": []})
def tags(tag_name: list[str] | None = None) -> None:
    """List tags, or the tasks carrying one"""
    from .lib.format import format_task
    from .tasks import load_tasks

    tasks = load_tasks()
    if not tag_name:
        counts = tag_counts(tasks)
        if not counts:
            echo("no tags")
            return
        for name in sorted(counts):
            echo(f"{ansi.tag(name)}  {counts[name]}")
        return
    name = " ".join(tag_name)
    tagged = [t for t in tasks_with_tag(tasks, name) if not t.archived]
    if not tagged:
        echo(f"no tasks tagged #{name}")
        return
    for t in tagged:
        echo(f"  {ansi.muted(f'{t.status:<10}')}{format_task(t, show_id=True)}")
