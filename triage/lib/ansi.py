import re
from collections.abc import Callable
from dataclasses import dataclass, fields
from zlib import crc32

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


@dataclass(frozen=True)
class Theme:
    red: str = "\033[38;5;203m"
    green: str = "\033[38;5;114m"
    yellow: str = "\033[38;5;221m"
    blue: str = "\033[38;5;111m"
    cyan: str = "\033[38;5;117m"
    gray: str = "\033[38;5;245m"
    orange: str = "\033[38;5;208m"
    coral: str = "\033[38;5;209m"
    muted: str = "\033[90m"  # secondary text
    bold: str = "\033[1m"
    dim: str = "\033[2m"
    reset: str = "\033[0m"


DEFAULT = Theme()
PLAIN = Theme(**{f.name: "" for f in fields(Theme)})
_active: Theme = DEFAULT


def use(theme: Theme) -> None:
    global _active
    _active = theme


_COLORS = {"red", "green", "yellow", "blue", "cyan", "gray", "orange", "coral", "muted"}

# tag colours, picked by a stable hash of the tag name
POOL: list[str] = [
    "\033[38;5;209m",
    "\033[38;5;215m",
    "\033[38;5;185m",
    "\033[38;5;149m",
    "\033[38;5;113m",
    "\033[38;5;116m",
    "\033[38;5;81m",
    "\033[38;5;69m",
    "\033[38;5;134m",
    "\033[38;5;204m",
]


def __getattr__(name: str) -> Callable[[str], str]:
    if name in _COLORS:

        def _wrap(text: str) -> str:
            return f"{getattr(_active, name)}{text}{_active.reset}"

        _wrap.__name__ = name
        return _wrap
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def bold(text: str) -> str:
    return f"{_active.bold}{text}{_active.reset}"


def dim(text: str) -> str:
    return f"{_active.dim}{text}{_active.reset}"


def tag(name: str) -> str:
    if _active is PLAIN:
        return f"#{name}"
    color = POOL[crc32(name.lower().encode()) % len(POOL)]
    return f"{color}#{name}{_active.reset}"


def strip(text: str) -> str:
    return _ANSI_RE.sub("", text)
