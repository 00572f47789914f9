"""Backup rotation — oldest-first eviction to stay within quota."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from app.core.quota import StorageQuotaEstimator
from app.core.record_store import BackupRecordStore
from app.models.backup_record import StorageUsage


@dataclass
class RotationResult:
    """Outcome of one rotation pass."""

    evicted: list[str] = field(default_factory=list)
    freed_bytes: int = 0
    target_bytes: int = 0

    @property
    def satisfied(self) -> bool:
        return self.freed_bytes >= self.target_bytes


class BackupRotationPolicy:
    """Evicts the oldest records in one batch sized from a byte estimate."""

    def __init__(self, store: BackupRecordStore, estimator: StorageQuotaEstimator) -> None:
        self._store = store
        self._estimator = estimator

    def bytes_to_reclaim(self, usage: StorageUsage, incoming_bytes: int = 0, pinned_bytes: int = 0) -> int:
        """
        Bytes that must go so usage drops below the critical threshold and,
        when ``incoming_bytes`` is given, so the incoming record fits.

        ``pinned_bytes`` is storage rotation cannot free (legacy and
        unparseable entries). When it alone is at or over the critical
        threshold, only the fit for the incoming record is pursued.
        """
        threshold = self._estimator.threshold_bytes()
        below_threshold = usage.used_bytes - threshold if pinned_bytes <= threshold else 0
        fits = usage.used_bytes + incoming_bytes - usage.estimated_limit_bytes if incoming_bytes else 0
        return max(0, below_threshold, fits)

    def make_room(self, usage: StorageUsage | None = None, incoming_bytes: int = 0) -> RotationResult:
        """Proactive eviction. Never removes the newest record."""
        usage = usage or self._estimator.estimate()
        sizes = self._store.entry_sizes()  # newest first
        pinned = max(0, usage.used_bytes - sum(size for _, size in sizes))
        if pinned > self._estimator.threshold_bytes():
            logger.warning(
                f"{pinned} bytes of legacy or unreadable backups exceed the critical threshold; "
                "rotation cannot free them, clear backups to reclaim the space"
            )
        target = self.bytes_to_reclaim(usage, incoming_bytes, pinned)
        result = RotationResult(target_bytes=target)
        if target == 0:
            return result

        batch = 0
        for _, size in reversed(sizes[1:]):
            if result.freed_bytes >= target:
                break
            result.freed_bytes += size
            batch += 1

        if batch:
            result.evicted = self._store.evict_oldest(batch)
        if result.satisfied:
            logger.info(f"Rotated {len(result.evicted)} old backup(s), freed {result.freed_bytes} bytes")
        else:
            logger.warning(
                f"Rotation freed {result.freed_bytes} of {target} bytes needed; "
                f"{len(sizes) - len(result.evicted)} record(s) remain"
            )
        return result

    def clear_all(self) -> int:
        """User-directed: remove every backup, including the newest."""
        return self._store.clear()
