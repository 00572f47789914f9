"""Storage quota estimation."""

from __future__ import annotations

from loguru import logger

from app.core.errors import StorageUnavailable
from app.core.record_store import BackupRecordStore
from app.models.backup_record import StorageUsage

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


class StorageQuotaEstimator:
    """Measures backup storage usage against an assumed capacity. Read-only."""

    def __init__(
        self,
        store: BackupRecordStore,
        limit_bytes: int = DEFAULT_QUOTA_BYTES,
        critical_percent: float = 90.0,
        warning_percent: float = 75.0,
    ) -> None:
        self._store = store
        self._limit = limit_bytes
        self._critical = critical_percent
        self._warning = warning_percent

    @property
    def limit_bytes(self) -> int:
        return self._limit

    @property
    def critical_percent(self) -> float:
        return self._critical

    def estimate(self, extra_bytes: int = 0) -> StorageUsage:
        """Current usage, optionally projected with ``extra_bytes`` more."""
        try:
            used = sum(self._store.raw_sizes())
        except StorageUnavailable as e:
            logger.warning(f"Storage usage unavailable: {e}")
            used = 0
        return StorageUsage(
            used_bytes=used + extra_bytes,
            estimated_limit_bytes=self._limit,
            critical_percent=self._critical,
            warning_percent=self._warning,
        )

    def threshold_bytes(self) -> int:
        """Largest usage that still counts as below the critical threshold."""
        # percentage_used < critical  <=>  used < limit * critical / 100
        boundary = self._limit * self._critical / 100
        as_int = int(boundary)
        return as_int - 1 if as_int == boundary else as_int
