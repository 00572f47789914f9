"""Application configuration — JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "ApplyTrak"


def get_config() -> Config:
    """Module-level factory — single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration with file locking."""

    _DEFAULTS: dict[str, Any] = {
        "theme": "auto",
        "backup_dir": "",
        "quota_bytes": 5 * 1024 * 1024,
        "critical_percent": 90,
        "warning_percent": 75,
        "usage_refresh_seconds": 30,
        "auto_backup_interval_minutes": 30,
        # 0 keeps every backup eligible for recovery regardless of age
        "max_backup_age_days": 0,
        "notes_max_length": 500,
    }

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = data_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk with file locking."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                if tmp_path.exists():
                    tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def theme(self) -> str:
        return self._data.get("theme", "auto")

    @theme.setter
    def theme(self, value: str) -> None:
        self.set("theme", value)

    @property
    def backup_dir(self) -> Path:
        raw = self._data.get("backup_dir", "")
        return Path(raw) if raw else self._dir / "backups"

    @backup_dir.setter
    def backup_dir(self, value: Path | None) -> None:
        self.set("backup_dir", str(value) if value else "")

    @property
    def quota_bytes(self) -> int:
        return int(self._data.get("quota_bytes", 5 * 1024 * 1024))

    @quota_bytes.setter
    def quota_bytes(self, value: int) -> None:
        self.set("quota_bytes", value)

    @property
    def critical_percent(self) -> float:
        return float(self._data.get("critical_percent", 90))

    @property
    def warning_percent(self) -> float:
        return float(self._data.get("warning_percent", 75))

    @property
    def usage_refresh_seconds(self) -> int:
        return int(self._data.get("usage_refresh_seconds", 30))

    @property
    def auto_backup_interval_minutes(self) -> int:
        return int(self._data.get("auto_backup_interval_minutes", 30))

    @auto_backup_interval_minutes.setter
    def auto_backup_interval_minutes(self, value: int) -> None:
        self.set("auto_backup_interval_minutes", value)

    @property
    def max_backup_age_days(self) -> int:
        return int(self._data.get("max_backup_age_days", 0))

    @max_backup_age_days.setter
    def max_backup_age_days(self, value: int) -> None:
        self.set("max_backup_age_days", value)

    @property
    def notes_max_length(self) -> int:
        return int(self._data.get("notes_max_length", 500))
