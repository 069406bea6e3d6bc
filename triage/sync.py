"""Follow the state file for writes made by other processes.

A second terminal (or any other writer) may replace the state file at any time.
``StateWatcher`` notices by polling the file's stat signature and hands the new
text to a callback; ``apply_external_snapshot`` turns that text back into a
valid collection.
"""

import logging
import signal
import threading
from collections.abc import Callable
from pathlib import Path

from fncli import cli

from . import config, engine, store
from .core import actions as act
from .core.errors import ValidationError
from .engine import Tasks
from .lib import clock

__all__ = ["StateWatcher", "apply_external_snapshot", "listen"]

logger = logging.getLogger(__name__)

OnChange = Callable[[str], None]
Signature = tuple[int, int]


class StateWatcher:
    def __init__(
        self,
        on_change: OnChange,
        path: Path | None = None,
        interval: float | None = None,
    ):
        self.on_change = on_change
        self.path = path if path else config.STATE_PATH
        self.interval = interval if interval else config.get_watch_interval()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._signature = self._stat()
        self._text = self._read()

    def _stat(self) -> Signature | None:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return st.st_mtime_ns, st.st_size

    def _read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def poll(self) -> bool:
        """Check once; call ``on_change`` and return True if the content changed."""
        signature = self._stat()
        if signature == self._signature:
            return False
        self._signature = signature
        text = self._read()
        if text is None or text == self._text:
            self._text = text
            return False
        self._text = text
        logger.debug("state file changed: %s", self.path)
        self.on_change(text)
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.poll()
            except Exception:
                logger.exception("state watcher poll failed")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="state-watcher")
        self._thread.start()
        logger.info("watching %s every %ss", self.path, self.interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None


def listen(
    on_change: OnChange, path: Path | None = None, interval: float | None = None
) -> Callable[[], None]:
    """Start watching and return the function that stops it."""
    watcher = StateWatcher(on_change, path=path, interval=interval)
    watcher.start()
    return watcher.stop


def apply_external_snapshot(tasks: Tasks, text: str, now: int) -> Tasks:
    """Adopt an externally written snapshot, or keep ``tasks`` if it is unusable."""
    try:
        incoming = store.parse_import(text)
    except ValidationError as e:
        logger.warning("ignoring external snapshot: %s", e)
        return tasks
    return engine.apply(tasks, act.Normalize(incoming, now))


@cli("triage")
def watch(interval: float | None = None) -> None:
    """Redraw the board whenever the state file changes"""
    from .dash import render_board
    from .tasks import load_tasks

    tasks = load_tasks()
    render_board(tasks, clear=True)
    stop = threading.Event()

    def on_change(text: str) -> None:
        nonlocal tasks
        tasks = apply_external_snapshot(tasks, text, clock.now_ms())
        render_board(tasks, clear=True)

    def handle_signal(signum, frame):
        stop.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    stop_watching = listen(on_change, interval=interval)
    try:
        stop.wait()
    finally:
        stop_watching()
