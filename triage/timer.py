"""Pomodoro-style focus countdown for the active task.

The countdown advances one second per tick rather than by wall clock, so a
suspended process (Ctrl-Z) resumes where it left off.
"""

import dataclasses
import logging
import signal
import sys
import threading
from collections.abc import Callable

from fncli import UsageError, cli

from . import store
from .core.errors import TriageError
from .core.models import Task
from .lib import ansi, clock
from .lib.errors import echo
from .lib.format import format_countdown
from .sync import apply_external_snapshot, listen

__all__ = ["FocusTimer", "run_focus"]

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


@dataclasses.dataclass
class FocusTimer:
    total_seconds: int = 0
    remaining_seconds: int = 0

    @property
    def running(self) -> bool:
        return self.remaining_seconds > 0

    @property
    def progress(self) -> float:
        if self.total_seconds == 0:
            return 0.0
        return (self.total_seconds - self.remaining_seconds) / self.total_seconds

    def start(self, seconds: int) -> None:
        self.total_seconds = self.remaining_seconds = max(0, seconds)

    def tick(self) -> bool:
        """Advance one second; True once the countdown reaches zero."""
        if self.remaining_seconds <= 1:
            self.remaining_seconds = 0
            return True
        self.remaining_seconds -= 1
        return False

    def reset(self) -> None:
        self.total_seconds = self.remaining_seconds = 0


def run_focus(
    timer: FocusTimer,
    stop: threading.Event,
    tick: float = TICK_SECONDS,
    on_tick: Callable[[FocusTimer], None] | None = None,
) -> bool:
    """Count ``timer`` down until it finishes (True) or ``stop`` is set (False)."""
    while timer.running:
        if stop.wait(tick):
            return False
        finished = timer.tick()
        if on_tick:
            on_tick(timer)
        if finished:
            return True
    return False


def _progress_line(timer: FocusTimer, task: Task, width: int = 20) -> str:
    filled = round(timer.progress * width)
    bar = "█" * filled + "·" * (width - filled)
    return f"\r{ansi.dim(bar)} {format_countdown(timer.remaining_seconds)}  {task.title}"


@cli("triage", flags={"minutes": ["-m", "--minutes"]})
def timer(minutes: int | None = None) -> None:
    """Run a focus countdown for the active task"""
    from .tasks import load_tasks

    tasks = load_tasks()
    active = next((t for t in tasks if t.status == "active"), None)
    if active is None:
        raise TriageError("nothing active to focus on")
    length = minutes if minutes is not None else store.load_settings().pomodoro_minutes
    if length <= 0:
        raise UsageError("--minutes must be a positive number")

    countdown = FocusTimer()
    countdown.start(length * 60)
    stop = threading.Event()
    ended: list[str] = []

    def on_change(text: str) -> None:
        current = apply_external_snapshot(tasks, text, clock.now_ms())
        still_active = any(t.id == active.id and t.status == "active" for t in current)
        if not still_active:
            ended.append(active.title)
            stop.set()

    def handle_signal(signum, frame):
        stop.set()

    def show(t: FocusTimer) -> None:
        sys.stdout.write(_progress_line(t, active))
        sys.stdout.flush()

    previous = {s: signal.signal(s, handle_signal) for s in (signal.SIGINT, signal.SIGTERM)}
    stop_watching = listen(on_change)
    logger.info("focus session started: %s (%sm)", active.id, length)
    try:
        show(countdown)
        finished = run_focus(countdown, stop, tick=TICK_SECONDS, on_tick=show)
    finally:
        stop_watching()
        for s, handler in previous.items():
            signal.signal(s, handler)

    echo()
    if finished:
        echo(f"\a✓ focus session done: {active.title} ({length}m)")
    elif ended:
        echo(f"■ {active.title} is no longer active")
    else:
        echo(f"■ stopped with {format_countdown(countdown.remaining_seconds)} left")
