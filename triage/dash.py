from collections.abc import Sequence

from fncli import cli

from .core.models import Settings, Status, Task
from .lib import ansi, clock
from .lib.errors import echo
from .lib.format import format_elapsed, format_task
from .stats import daily_goal, overdue_deferred, stale_tasks
from .tag import tasks_with_tag
from .tasks import lane

_CLEAR = "\033[2J\033[H"

_SECTIONS: tuple[tuple[str, Status], ...] = (
    ("QUEUE", "queued"),
    ("INBOX", "captured"),
    ("LATER", "deferred"),
)


def board_lines(
    tasks: Sequence[Task], now: int, settings: Settings | None = None, tag: str | None = None
) -> list[str]:
    settings = settings if settings else Settings()
    visible = tasks_with_tag(tasks, tag) if tag else list(tasks)
    lines = []

    progress = daily_goal(tasks, settings, now)
    done_mark = ansi.green(" ✓") if progress.achieved else ""
    lines.append(ansi.muted(f"today {progress.done_today}/{progress.goal}") + done_mark)

    active = next((t for t in visible if t.status == "active" and not t.archived), None)
    lines.append("")
    if active is None:
        lines.append(f"{ansi.bold('NOW')}  {ansi.muted('nothing active')}")
    else:
        since = format_elapsed(active.started_at, now) if active.started_at else ""
        lines.append(f"{ansi.bold('NOW')}  ⦿ {format_task(active, show_id=True, now=now)}")
        if since:
            lines.append(ansi.muted(f"     started {since}"))

    for title, status in _SECTIONS:
        items = lane(visible, status)
        if not items:
            continue
        lines.append("")
        lines.append(f"{ansi.bold(title)} {ansi.muted(str(len(items)))}")
        lines.extend(f"  {format_task(t, show_id=True, now=now)}" for t in items)

    warnings = []
    stale = stale_tasks(tasks, now)
    if stale:
        warnings.append(ansi.yellow(f"{len(stale)} stale"))
    overdue = overdue_deferred(tasks, now)
    if overdue:
        warnings.append(ansi.red(f"{len(overdue)} overdue"))
    if warnings:
        lines.append("")
        lines.append("  ".join(warnings) + ansi.muted("  (triage stats)"))
    return lines


def render_board(
    tasks: Sequence[Task],
    settings: Settings | None = None,
    tag: str | None = None,
    clear: bool = False,
) -> None:
    from .store import load_settings

    settings = settings if settings else load_settings()
    text = "\n".join(board_lines(tasks, clock.now_ms(), settings, tag))
    echo(f"{_CLEAR}{text}" if clear else text)


@cli("triage", flags={"tag": ["-t", "--tag"]})
def dashboard(tag: str | None = None) -> None:
    """Board: focus, queue, inbox, later"""
    from .tasks import load_tasks

    render_board(load_tasks(), tag=tag)
