"""Backup writer — creates snapshot records under quota pressure."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from loguru import logger

from app.core.errors import BackupError, StorageFull, StorageUnavailable
from app.core.quota import StorageQuotaEstimator
from app.core.record_store import BackupRecordStore
from app.core.rotation import BackupRotationPolicy
from app.core.schema import format_timestamp, parse_timestamp, project_application
from app.core.storage_backend import encoded_size
from app.models.backup_record import CURRENT_SCHEMA_VERSION, BackupRecord, BackupTrigger


@dataclass
class BackupResult:
    """Result of a backup attempt. Failures are values, not exceptions."""

    success: bool = True
    record: BackupRecord | None = None
    error: BackupError | None = None
    trigger: BackupTrigger = BackupTrigger.MANUAL
    evicted: list[str] = field(default_factory=list)
    retried: bool = False


class BackupWriter:
    """
    Creates backup records.

    The usage check, rotation and write run as one critical section, so
    concurrent callers cannot interleave between "measure" and "write".
    """

    def __init__(
        self,
        store: BackupRecordStore,
        estimator: StorageQuotaEstimator,
        rotation: BackupRotationPolicy,
        notes_max_length: int = 500,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._estimator = estimator
        self._rotation = rotation
        self._notes_max_length = notes_max_length
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._lock = threading.RLock()
        self._last_stamp: datetime | None = None

    def _next_timestamp(self) -> str:
        """Fresh, strictly increasing timestamp."""
        now = self._clock().astimezone(timezone.utc)
        if self._last_stamp is None:
            latest = self._store.latest()
            self._last_stamp = parse_timestamp(latest.timestamp) if latest else None
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return format_timestamp(now)

    def build_record(self, applications: Iterable[dict[str, Any]]) -> BackupRecord:
        """Project live applications into a new canonical record."""
        snapshots = tuple(project_application(app, self._notes_max_length) for app in applications)
        return BackupRecord(
            applications=snapshots,
            timestamp=self._next_timestamp(),
            schema_version=CURRENT_SCHEMA_VERSION,
        )

    def create_backup(
        self,
        applications: Iterable[dict[str, Any]],
        trigger: BackupTrigger = BackupTrigger.MANUAL,
    ) -> BackupResult:
        """Snapshot ``applications``. Never raises for storage problems."""
        result = BackupResult(trigger=trigger)
        with self._lock:
            try:
                record = self.build_record(applications)
                incoming = encoded_size(json.dumps(record.to_document(), ensure_ascii=False))

                usage = self._estimator.estimate()
                if not usage.can_backup:
                    logger.warning(
                        f"Backup storage at {usage.percentage_used:.1f}%, rotating before {trigger} backup"
                    )
                    result.evicted += self._rotation.make_room(usage).evicted

                try:
                    result.record = self._store.append(record)
                except StorageFull as e:
                    logger.warning(f"Backup write rejected ({e}), rotating and retrying once")
                    result.retried = True
                    result.evicted += self._rotation.make_room(incoming_bytes=incoming).evicted
                    result.record = self._store.append(record)
            except (StorageFull, StorageUnavailable) as e:
                result.success = False
                result.error = e
                logger.error(f"{trigger.capitalize()} backup failed: {e}")
                return result

        logger.info(f"{trigger.capitalize()} backup created ({result.record.count} applications)")
        return result

    def create_manual(self, applications: Iterable[dict[str, Any]]) -> BackupResult:
        return self.create_backup(applications, BackupTrigger.MANUAL)

    def create_automatic(self, applications: Iterable[dict[str, Any]]) -> BackupResult:
        return self.create_backup(applications, BackupTrigger.AUTOMATIC)
