"""Durable JSON store for the task collection and settings.

The state file holds ``{"version", "updatedAt", "tasks", "settings"}``. Older
schema versions are upgraded on load, one step at a time, after the original
file is copied aside.
"""

import contextlib
import dataclasses
import json
import logging
import os
import shutil
import tempfile
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from fncli import UsageError, cli

from . import config
from .core.errors import ValidationError
from .core.models import STATUSES, Settings, Task
from .lib import clock
from .lib.converters import (
    RECORD_KEYS,
    record_to_settings,
    record_to_task,
    settings_to_record,
    task_to_record,
)
from .lib.errors import echo

__all__ = [
    "SCHEMA_VERSION",
    "State",
    "export_json",
    "load_settings",
    "load_state",
    "migrate",
    "parse_import",
    "save_settings",
    "save_state",
    "validate_import",
]

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

Migration = Callable[[dict[str, Any]], dict[str, Any]]


@dataclasses.dataclass(frozen=True)
class State:
    tasks: tuple[Task, ...] = ()
    settings: Settings = dataclasses.field(default_factory=Settings)
    updated_at: int | None = None


# ── schema migration ─────────────────────────────────────────────────────────


def _upgrade_record(raw: dict[str, Any]) -> dict[str, Any]:
    record = {k: v for k, v in raw.items() if k in RECORD_KEYS}
    if not record.get("priority"):
        record["priority"] = "normal"
    if not isinstance(record.get("tags"), list):
        record["tags"] = []
    return record


def _v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "version": 2,
        "updatedAt": data.get("updatedAt"),
        "tasks": [_upgrade_record(t) for t in data["tasks"] if isinstance(t, dict)],
        "settings": settings_to_record(Settings()),
    }


_MIGRATIONS: dict[int, Migration] = {1: _v1_to_v2}


def _task_count(data: dict[str, Any]) -> int:
    return sum(1 for t in data.get("tasks", []) if isinstance(t, dict))


def migrate(data: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a persisted state dict to ``SCHEMA_VERSION``."""
    version = data.get("version")
    if version != SCHEMA_VERSION and version not in _MIGRATIONS:
        raise ValidationError(f"unsupported state version: {version!r}")

    before = _task_count(data)
    while data.get("version") != SCHEMA_VERSION:
        from_version = data["version"]
        data = _MIGRATIONS[from_version](data)
        logger.debug("upgraded state schema v%s -> v%s", from_version, data["version"])

    after = _task_count(data)
    if after < before:
        raise ValidationError(f"migration data loss: {before} tasks before, {after} after")
    return data


def _snapshot_before_migration(path: Path) -> Path:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    mig_dir = config.BACKUP_DIR / "migrations"
    mig_dir.mkdir(parents=True, exist_ok=True)
    snapshot = mig_dir / f"{path.stem}.{timestamp}.json"
    shutil.copy2(path, snapshot)
    return snapshot


# ── file io ──────────────────────────────────────────────────────────────────


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"state file {path} is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        raise ValidationError(f"state file {path} has no task list")
    return data


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


def _is_loadable(record: object) -> bool:
    return (
        isinstance(record, dict)
        and isinstance(record.get("id"), str)
        and isinstance(record.get("title"), str)
    )


def _state_from(data: dict[str, Any]) -> State:
    records = data["tasks"]
    tasks = tuple(record_to_task(r) for r in records if _is_loadable(r))
    skipped = len(records) - len(tasks)
    if skipped:
        logger.warning("skipped %d unreadable task record(s)", skipped)
    updated_at = data.get("updatedAt")
    return State(
        tasks=tasks,
        settings=record_to_settings(data.get("settings")),
        updated_at=int(updated_at) if isinstance(updated_at, (int, float)) else None,
    )


def load_state(path: Path | None = None) -> State:
    """Load the stored state, upgrading older schema versions in place."""
    path = path if path else config.STATE_PATH
    data = _read_json(path)
    if data is None:
        return State()
    if data.get("version") != SCHEMA_VERSION:
        snapshot = _snapshot_before_migration(path)
        data = migrate(data)
        _write_json(path, data)
        logger.info("migrated %s to schema v%d (previous copy: %s)", path, SCHEMA_VERSION, snapshot)
    return _state_from(data)


def _stored_settings(path: Path) -> Settings:
    try:
        data = _read_json(path)
    except ValidationError as e:
        logger.warning("ignoring stored settings: %s", e)
        return Settings()
    return record_to_settings(data.get("settings")) if data else Settings()


def save_state(
    tasks: Iterable[Task],
    settings: Settings | None = None,
    now: int | None = None,
    path: Path | None = None,
) -> Path:
    """Write the collection (and settings) as the current schema version."""
    path = path if path else config.STATE_PATH
    if settings is None:
        settings = _stored_settings(path)
    payload = {
        "version": SCHEMA_VERSION,
        "updatedAt": now if now is not None else clock.now_ms(),
        "tasks": [task_to_record(t) for t in tasks],
        "settings": settings_to_record(settings),
    }
    _write_json(path, payload)
    logger.debug("saved %d task(s) to %s", len(payload["tasks"]), path)
    return path


def load_settings(path: Path | None = None) -> Settings:
    return load_state(path).settings


def save_settings(settings: Settings, path: Path | None = None) -> None:
    state = load_state(path)
    save_state(state.tasks, settings, path=path)


# ── export / import ──────────────────────────────────────────────────────────


def export_json(path: Path | None = None) -> str | None:
    """Return the stored state exactly as it sits on disk."""
    path = path if path else config.STATE_PATH
    if not path.exists():
        return None
    return path.read_text(encoding="utf-8")


def _is_number(val: object) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def _is_task_shape(record: object) -> bool:
    if not isinstance(record, dict):
        return False
    return (
        isinstance(record.get("id"), str)
        and isinstance(record.get("title"), str)
        and record.get("status") in STATUSES
        and _is_number(record.get("createdAt"))
        and _is_number(record.get("updatedAt"))
        and _is_number(record.get("order"))
    )


def validate_import(data: object) -> bool:
    if not isinstance(data, dict):
        return False
    if data.get("version") not in (1, 2):
        return False
    if not _is_number(data.get("updatedAt")):
        return False
    tasks = data.get("tasks")
    if not isinstance(tasks, list):
        return False
    return all(_is_task_shape(t) for t in tasks)


def parse_import(text: str) -> list[Task]:
    """Validate exported JSON and return its tasks, upgraded to the current schema.

    Raises ValidationError without touching any stored state when the input is
    malformed.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"import rejected: not valid JSON ({e.msg})") from e
    if not validate_import(data):
        raise ValidationError("import rejected: missing or mistyped task fields")
    data = migrate(data)
    return [record_to_task(r) for r in data["tasks"]]


# ── cli ──────────────────────────────────────────────────────────────────────


@cli("triage", name="settings")
def settings_cmd(pomodoro: int | None = None, goal: int | None = None, ai: str | None = None) -> None:
    """Show or change stored settings"""
    current = load_settings()
    changes: dict[str, Any] = {}
    if pomodoro is not None:
        if pomodoro <= 0:
            raise UsageError("--pomodoro must be a positive number of minutes")
        changes["pomodoro_minutes"] = pomodoro
    if goal is not None:
        if goal < 0:
            raise UsageError("--goal must be 0 (auto) or more")
        changes["daily_goal"] = goal
    if ai is not None:
        if ai.lower() not in ("on", "off"):
            raise UsageError("--ai takes 'on' or 'off'")
        changes["enable_ai"] = ai.lower() == "on"
    if changes:
        current = dataclasses.replace(current, **changes)
        save_settings(current)
    goal_str = str(current.daily_goal) if current.daily_goal else "auto"
    echo(f"pomodoro: {current.pomodoro_minutes}m")
    echo(f"goal:     {goal_str}")
    echo(f"ai:       {'on' if current.enable_ai else 'off'}")
