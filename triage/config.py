import os
from pathlib import Path

import yaml

TRIAGE_DIR = Path.home() / ".triage"
STATE_PATH = TRIAGE_DIR / "state.json"
CONFIG_PATH = TRIAGE_DIR / "config.yaml"
BACKUP_DIR = Path.home() / ".triage_backups"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Config:
    """Single-instance config manager. Load once, cache in memory."""

    _instance: "Config | None" = None
    _data: dict[str, object]

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = {}
            cls._instance._load()
        return cls._instance

    def _load(self) -> None:
        """Load config from disk."""
        if not CONFIG_PATH.exists():
            self._data = {}
            return
        try:
            with CONFIG_PATH.open() as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError):
            loaded = None
        self._data = loaded if isinstance(loaded, dict) else {}

    def reload(self) -> None:
        """Re-read config from disk, dropping cached values."""
        self._load()

    def get(self, key: str, default: object = None) -> object:
        """Get config value."""
        return self._data.get(key, default)


_config = Config()


def _positive_int(key: str, default: int) -> int:
    val = _config.get(key)
    return val if isinstance(val, int) and not isinstance(val, bool) and val > 0 else default


def get_log_level() -> str:
    """Logging level name; TRIAGE_LOG_LEVEL overrides the config file."""
    raw = os.environ.get("TRIAGE_LOG_LEVEL") or _config.get("log_level") or "WARNING"
    level = str(raw).strip().upper()
    return level if level in _LOG_LEVELS else "WARNING"


def get_backup_keep() -> int:
    """Number of snapshot generations to retain."""
    return _positive_int("backup_keep", 7)


def get_stale_days() -> tuple[int, int]:
    """Age thresholds (captured, deferred) after which a task counts as stale."""
    return _positive_int("stale_captured_days", 30), _positive_int("stale_deferred_days", 60)


def get_watch_interval() -> float:
    val = _config.get("watch_interval")
    if isinstance(val, (int, float)) and not isinstance(val, bool) and val > 0:
        return float(val)
    return 1.0
