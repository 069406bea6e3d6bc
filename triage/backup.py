import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from fncli import cli

from . import config
from .core.errors import NotFoundError, TriageError, ValidationError
from .lib import clock
from .lib.errors import echo

logger = logging.getLogger(__name__)

_SNAPSHOT_FILE = "state.json"
_LAST_BACKUP_FILE = "last_backup"
_MIN_TASK_RATIO = 0.5
_ONE_DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class BackupEntry:
    id: str
    created_at: datetime
    path: Path
    tasks: int | None


def _is_snapshot_dir(p: Path) -> bool:
    return p.is_dir() and p.name[:8].isdigit() and "_" in p.name


def _snapshots() -> list[Path]:
    """Snapshot dirs, newest first."""
    backup_dir = config.BACKUP_DIR
    if not backup_dir.exists():
        return []
    return sorted((s for s in backup_dir.iterdir() if _is_snapshot_dir(s)), reverse=True)


def _task_count(path: Path) -> int | None:
    """Number of task records in a state file; None when it cannot be parsed."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        return None
    return len(data["tasks"])


def _validate_backup(dst: Path, src: Path) -> tuple[bool, str]:
    dst_count = _task_count(dst)
    src_count = _task_count(src)

    if dst_count is None:
        return False, "backup is not a readable state file"
    if src_count and dst_count == 0:
        return False, "backup has no tasks but source does"
    if src_count and dst_count < src_count * _MIN_TASK_RATIO:
        return False, f"backup has {dst_count} tasks vs source {src_count}, too much loss"
    return True, "ok"


def _failed(error: str) -> dict[str, Any]:
    return {"path": None, "tasks": 0, "delta_total": None, "pruned": 0, "error": error}


def _last_backup_marker() -> Path:
    return config.TRIAGE_DIR / _LAST_BACKUP_FILE


def last_backup_time() -> int | None:
    marker = _last_backup_marker()
    if not marker.exists():
        return None
    raw = marker.read_text().strip()
    return int(raw) if raw.isdigit() else None


def run_backup(keep: int | None = None) -> dict[str, Any]:
    src = config.STATE_PATH
    if not src.exists():
        return _failed("source state missing")

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = config.BACKUP_DIR / timestamp
    backup_path.mkdir(parents=True, exist_ok=True)

    dst = backup_path / _SNAPSHOT_FILE
    shutil.copy2(src, dst)

    valid, reason = _validate_backup(dst, src)
    if not valid:
        shutil.rmtree(backup_path, ignore_errors=True)
        logger.warning("backup rejected: %s", reason)
        return _failed(reason)

    total = _task_count(dst) or 0
    previous = next((s for s in _snapshots() if s != backup_path), None)
    prev_total = _task_count(previous / _SNAPSHOT_FILE) if previous else None
    delta_total = total - prev_total if prev_total is not None else None

    marker = _last_backup_marker()
    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.write_text(str(clock.now_ms()))

    pruned = run_prune(keep)
    logger.info("backup %s: %d task(s), pruned %d", backup_path.name, total, pruned)
    return {
        "path": backup_path,
        "tasks": total,
        "delta_total": delta_total,
        "pruned": pruned,
    }


def run_prune(keep: int | None = None) -> int:
    """Delete the oldest snapshots beyond ``keep`` generations."""
    keep = keep if keep is not None else config.get_backup_keep()
    snapshots = _snapshots()
    removed = 0
    for s in snapshots[max(keep, 1) :]:
        shutil.rmtree(s, ignore_errors=True)
        removed += 1
    if removed:
        logger.debug("pruned %d snapshot(s)", removed)
    return removed


def _parse_snapshot_time(name: str) -> datetime | None:
    try:
        return datetime.strptime(name, "%Y%m%d_%H%M%S_%f")
    except ValueError:
        return None


def list_backups() -> list[BackupEntry]:
    entries = []
    for s in _snapshots():
        created = _parse_snapshot_time(s.name)
        if created is None:
            created = datetime.fromtimestamp(s.stat().st_mtime)
        entries.append(
            BackupEntry(
                id=s.name, created_at=created, path=s, tasks=_task_count(s / _SNAPSHOT_FILE)
            )
        )
    return entries


def restore_backup(backup_id: str) -> Path:
    """Overwrite the state file with a snapshot. The caller reloads afterwards."""
    snapshot = config.BACKUP_DIR / backup_id / _SNAPSHOT_FILE
    if not _is_snapshot_dir(snapshot.parent) or not snapshot.exists():
        raise NotFoundError(f"no backup '{backup_id}'")
    if _task_count(snapshot) is None:
        raise ValidationError(f"backup '{backup_id}' is not a readable state file")
    dst = config.STATE_PATH
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(snapshot, dst)
    logger.info("restored %s from backup %s", dst, backup_id)
    return dst


def auto_backup_if_needed(now: int | None = None) -> dict[str, Any] | None:
    """Take a backup when the last one is more than a day old."""
    now = now if now is not None else clock.now_ms()
    last = last_backup_time()
    if last is not None and now - last < _ONE_DAY_MS:
        return None
    if not config.STATE_PATH.exists():
        return None
    return run_backup()


def _print_result(result: dict[str, Any]) -> None:
    if result.get("error"):
        raise TriageError(f"backup failed: {result['error']}")

    delta_total = result["delta_total"]
    delta_str = ""
    if delta_total is not None and delta_total != 0:
        delta_str = f" (+{delta_total})" if delta_total > 0 else f" ({delta_total})"
    echo(str(result["path"]))
    echo(f"  {result['tasks']} tasks{delta_str}")
    if result["pruned"]:
        echo(f"  pruned {result['pruned']}")


@cli("triage", name="backup")
def backup() -> None:
    """Create verified state backup"""
    _print_result(run_backup())


@cli("triage backup", name="ls")
def backup_ls() -> None:
    """List backups, newest first"""
    entries = list_backups()
    if not entries:
        echo("no backups")
        return
    for e in entries:
        count = "?" if e.tasks is None else str(e.tasks)
        echo(f"{e.id}  {e.created_at:%Y-%m-%d %H:%M}  {count} tasks")


@cli("triage backup", name="restore")
def backup_restore(backup_id: str) -> None:
    """Replace current state with a backup"""
    from .tasks import load_tasks

    restore_backup(backup_id)
    tasks = load_tasks()
    echo(f"restored {backup_id}: {len(tasks)} tasks")


@cli("triage backup", name="prune")
def backup_prune(keep: int | None = None) -> None:
    """Delete old backups"""
    removed = run_prune(keep)
    echo(f"pruned {removed}")
