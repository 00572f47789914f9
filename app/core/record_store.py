"""Backup record store — ordered, immutable snapshot records over a StorageBackend."""

from __future__ import annotations

import json
import threading

from loguru import logger

from app.core.errors import CorruptRecord
from app.core.schema import parse_record, recency_key
from app.core.storage_backend import StorageBackend, encoded_size
from app.models.backup_record import BackupRecord

RECORD_PREFIX = "applytrak.backup."

# Keys written by earlier releases. Read by recovery, removed by clear().
LEGACY_KEYS = ("jobTrackerBackup", "jobTrackerBackups", "jobTrackerBackupMinimal")


class BackupRecordStore:
    """
    Durable collection of backup records.

    Each record is one JSON document under ``applytrak.backup.<timestamp>``.
    Timestamps are unique per writer, so the key order is the record order.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        self._lock = threading.RLock()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @staticmethod
    def key_for(timestamp: str) -> str:
        return f"{RECORD_PREFIX}{timestamp}"

    def _record_keys(self) -> list[str]:
        return [k for k in self._backend.keys() if k.startswith(RECORD_PREFIX)]

    def _load(self) -> list[tuple[BackupRecord, str]]:
        """Parse every record entry, newest first, with its stored payload."""
        loaded: list[tuple[BackupRecord, str]] = []
        for key in self._record_keys():
            raw = self._backend.get(key)
            if raw is None:
                continue
            try:
                record = parse_record(key, raw)
            except CorruptRecord as e:
                logger.warning(f"Skipping corrupt backup record {e}")
                continue
            loaded.append((record, raw))
        loaded.sort(key=lambda pair: recency_key(pair[0]), reverse=True)
        return loaded

    def list(self) -> list[BackupRecord]:
        """All parseable records, newest first."""
        with self._lock:
            return [record for record, _ in self._load()]

    def latest(self) -> BackupRecord | None:
        records = self.list()
        return records[0] if records else None

    def entry_sizes(self) -> list[tuple[str, int]]:
        """(key, stored bytes) of every parseable record, newest first."""
        with self._lock:
            return [(record.key, encoded_size(raw)) for record, raw in self._load()]

    def record_payloads(self) -> list[tuple[str, str]]:
        """(key, raw payload) of every parseable record, newest first."""
        with self._lock:
            return [(record.key, raw) for record, raw in self._load()]

    def raw_sizes(self) -> list[int]:
        """Stored size of every entry this store owns, parseable or not."""
        with self._lock:
            sizes: list[int] = []
            for key in self._backend.keys():
                if key.startswith(RECORD_PREFIX) or key in LEGACY_KEYS:
                    raw = self._backend.get(key)
                    if raw is not None:
                        sizes.append(encoded_size(raw))
            return sizes

    def legacy_entries(self) -> list[tuple[str, str]]:
        """Raw (key, payload) pairs for every legacy key present."""
        with self._lock:
            entries: list[tuple[str, str]] = []
            for key in LEGACY_KEYS:
                raw = self._backend.get(key)
                if raw is not None:
                    entries.append((key, raw))
            return entries

    def append(self, record: BackupRecord) -> BackupRecord:
        """
        Persist a new record and return it with its storage key.

        Raises StorageFull / StorageUnavailable from the backend.
        """
        key = self.key_for(record.timestamp)
        payload = json.dumps(record.to_document(), ensure_ascii=False)
        with self._lock:
            self._backend.set(key, payload)
        logger.debug(f"Stored backup record {key} ({record.count} applications, {encoded_size(payload)} bytes)")
        return BackupRecord(
            applications=record.applications,
            timestamp=record.timestamp,
            schema_version=record.schema_version,
            key=key,
        )

    def evict_oldest(self, n: int) -> list[str]:
        """Remove up to ``n`` oldest records. The newest record always survives."""
        if n <= 0:
            return []
        with self._lock:
            keys = [key for key, _ in self.entry_sizes()]
            victims = keys[1:][-n:] if len(keys) > 1 else []
            for key in victims:
                self._backend.remove(key)
                logger.debug(f"Evicted backup record {key}")
            return victims

    def clear(self) -> int:
        """Remove every record and every legacy entry. Returns entries removed."""
        with self._lock:
            keys = self._record_keys() + [k for k in LEGACY_KEYS if self._backend.get(k) is not None]
            for key in keys:
                self._backend.remove(key)
        logger.info(f"Cleared {len(keys)} local backup entries")
        return len(keys)

    def __len__(self) -> int:
        return len(self.list())
