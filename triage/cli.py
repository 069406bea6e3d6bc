import logging
import os
import sys
from pathlib import Path

import fncli

from . import config
from .core.errors import TriageError
from .lib import ansi

logger = logging.getLogger(__name__)

_discovered = False


def discover() -> None:
    global _discovered
    if not _discovered:
        fncli.autodiscover(Path(__file__).parent, "triage")
        _discovered = True


def run(args: list[str]) -> int:
    """Dispatch one invocation; TriageError becomes exit code 1."""
    discover()
    argv = ["triage", *args] if args else ["triage", "dashboard"]
    try:
        return fncli.dispatch(argv)
    except TriageError as e:
        sys.stderr.write(f"{e}\n")
        return 1


def _setup_logging() -> None:
    logging.basicConfig(level=config.get_log_level(), format="%(levelname)s %(message)s")


def main():
    _setup_logging()
    if os.environ.get("NO_COLOR") or not sys.stdout.isatty():
        ansi.use(ansi.PLAIN)

    from .backup import auto_backup_if_needed

    try:
        auto_backup_if_needed()
    except OSError as e:
        logger.warning("automatic backup skipped: %s", e)

    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
