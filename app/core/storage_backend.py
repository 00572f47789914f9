"""Storage backends — string key/value persistence underneath the record store."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from loguru import logger

from app.core.errors import StorageFull, StorageUnavailable


def encoded_size(value: str) -> int:
    """Byte accounting used everywhere: UTF-8 encoded length."""
    return len(value.encode("utf-8"))


class StorageBackend(Protocol):
    """Minimal key/value interface, modelled on browser local storage."""

    def keys(self) -> list[str]: ...

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryBackend:
    """In-memory backend with an optional hard capacity."""

    def __init__(self, capacity_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self.capacity_bytes = capacity_bytes
        self.available = True

    def _check(self) -> None:
        if not self.available:
            raise StorageUnavailable("Local storage is disabled")

    def keys(self) -> list[str]:
        self._check()
        return list(self._data)

    def get(self, key: str) -> str | None:
        self._check()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check()
        if self.capacity_bytes is not None:
            used = sum(encoded_size(v) for k, v in self._data.items() if k != key)
            needed = encoded_size(value)
            if used + needed > self.capacity_bytes:
                raise StorageFull(
                    f"Quota exceeded writing {key}",
                    needed_bytes=needed,
                    available_bytes=max(0, self.capacity_bytes - used),
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._check()
        self._data.pop(key, None)


class FileBackend:
    """
    Directory-backed backend — one file per key.

    Keys are percent-encoded into file names; writes go through a
    temporary file and an atomic replace.
    """

    _SUFFIX = ".json"

    def __init__(self, directory: Path, capacity_bytes: int | None = None) -> None:
        self._dir = directory
        self._capacity = capacity_bytes
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self._dir / f"{quote(key, safe='')}{self._SUFFIX}"

    def _ensure_dir(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot access backup directory {self._dir}: {e}") from e

    def keys(self) -> list[str]:
        self._ensure_dir()
        try:
            return [unquote(p.name[: -len(self._SUFFIX)]) for p in self._dir.glob(f"*{self._SUFFIX}")]
        except OSError as e:
            raise StorageUnavailable(str(e)) from e

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            # Undecodable bytes are treated like any other corrupt payload.
            logger.warning(f"Undecodable backup entry {path.name}: {e}")
            return ""
        except OSError as e:
            raise StorageUnavailable(f"Failed to read {path.name}: {e}") from e

    def _used_bytes(self, exclude: Path) -> int:
        total = 0
        for p in self._dir.glob(f"*{self._SUFFIX}"):
            if p != exclude:
                total += p.stat().st_size
        return total

    def set(self, key: str, value: str) -> None:
        self._ensure_dir()
        path = self._path(key)
        data = value.encode("utf-8")
        with self._lock:
            if self._capacity is not None:
                used = self._used_bytes(path)
                if used + len(data) > self._capacity:
                    raise StorageFull(
                        f"Quota exceeded writing {key}",
                        needed_bytes=len(data),
                        available_bytes=max(0, self._capacity - used),
                    )
            tmp = path.with_suffix(".tmp")
            try:
                tmp.write_bytes(data)
                tmp.replace(path)
            except OSError as e:
                tmp.unlink(missing_ok=True)
                raise StorageUnavailable(f"Failed to write {path.name}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Failed to remove {key}: {e}") from e
