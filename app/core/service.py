"""Backup service — the operations the UI layer invokes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from app.core.errors import StorageUnavailable
from app.core.recovery import RecoveryState

if TYPE_CHECKING:
    from app.core.quota import StorageQuotaEstimator
    from app.core.record_store import BackupRecordStore
    from app.core.recovery import RecoveryFlow, RecoveryReconciler
    from app.core.rotation import BackupRotationPolicy
    from app.core.scheduling import UsageMonitor
    from app.core.writer import BackupResult, BackupWriter
    from app.data.applications import ApplicationSource
    from app.models.backup_record import BackupRecord, RecoveryCandidate, RecoveryStats, StorageUsage


class BackupService:
    """
    Facade over the backup engine for UI widgets.

    Every mutating call refreshes the usage monitor. Presentation of
    success and failure is left to the caller.
    """

    def __init__(
        self,
        source: ApplicationSource,
        store: BackupRecordStore,
        estimator: StorageQuotaEstimator,
        rotation: BackupRotationPolicy,
        writer: BackupWriter,
        reconciler: RecoveryReconciler,
        flow: RecoveryFlow,
        monitor: UsageMonitor | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._estimator = estimator
        self._rotation = rotation
        self._writer = writer
        self._reconciler = reconciler
        self._flow = flow
        self._monitor = monitor

    @property
    def flow(self) -> RecoveryFlow:
        return self._flow

    def _refresh(self) -> None:
        if self._monitor is not None:
            self._monitor.refresh()

    def storage_usage(self) -> StorageUsage:
        return self._estimator.estimate()

    def latest_backup(self) -> BackupRecord | None:
        try:
            return self._store.latest()
        except StorageUnavailable as e:
            logger.warning(f"Cannot read backups: {e}")
            return None

    def create_manual_backup(self) -> BackupResult:
        result = self._writer.create_manual(self._source.get_applications())
        self._refresh()
        return result

    def clear_backups(self) -> int:
        """Explicit user command: removes every backup, newest included."""
        removed = self._rotation.clear_all()
        self._refresh()
        return removed

    def list_recovery_candidates(self) -> list[RecoveryCandidate]:
        return self._reconciler.candidates()

    def recovery_stats(self) -> RecoveryStats:
        return self._reconciler.stats()

    def check_recovery(self) -> bool:
        """Advance the recovery flow with the live count. True when a prompt should show."""
        state = self._flow.observe_live_count(len(self._source.get_applications()))
        if state is RecoveryState.CANDIDATES_FOUND:
            self._flow.prompt()
        return self._flow.is_prompting

    def accept_recovery(self, candidate: RecoveryCandidate | None = None) -> list[dict[str, Any]]:
        """Commit the chosen (or suggested) candidate back into the data source."""
        if self._flow.is_prompting:
            applications = self._flow.accept(candidate)
        else:
            chosen = candidate or self._reconciler.best()
            applications = self._reconciler.accept(chosen) if chosen else []
        if applications:
            self._source.replace_applications(applications)
        return applications

    def dismiss_recovery(self) -> None:
        self._flow.dismiss()
