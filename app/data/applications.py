"""Application data source — the live data collaborator of the backup engine."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from loguru import logger


class ApplicationSource(Protocol):
    """Supplies live applications to the writer and accepts recovered ones."""

    def get_applications(self) -> list[dict[str, Any]]: ...

    def replace_applications(self, applications: list[dict[str, Any]]) -> None: ...


class JsonApplicationSource:
    """
    Local application list — reads/writes applications.json.

    Stands in for the remote store on the desktop entry point.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._path = data_dir / "applications.json"

    @property
    def path(self) -> Path:
        return self._path

    def get_applications(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load applications: {e}")
            return []
        if not isinstance(data, list):
            logger.error(f"Unexpected applications file layout in {self._path}")
            return []
        return [app for app in data if isinstance(app, dict)]

    def replace_applications(self, applications: list[dict[str, Any]]) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(applications, f, ensure_ascii=False, indent=2)
            tmp.replace(self._path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            logger.error(f"Failed to save applications: {e}")
            raise
        logger.info(f"Saved {len(applications)} applications")
