"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.config import Config
    from app.core.quota import StorageQuotaEstimator
    from app.core.record_store import BackupRecordStore
    from app.core.recovery import RecoveryFlow, RecoveryReconciler, RecoveryScanner
    from app.core.rotation import BackupRotationPolicy
    from app.core.scheduling import AutoBackupScheduler, UsageMonitor
    from app.core.service import BackupService
    from app.core.storage_backend import StorageBackend
    from app.core.writer import BackupWriter
    from app.data.applications import ApplicationSource


@dataclass
class AppContext:
    """
    Central service container.

    Widgets receive this at construction time and talk to the engine
    through ``backup_service``; the lower-level services are exposed for
    diagnostics and tests.
    """

    config: Config
    source: ApplicationSource

    # Storage
    backend: StorageBackend
    store: BackupRecordStore
    estimator: StorageQuotaEstimator
    rotation: BackupRotationPolicy
    writer: BackupWriter

    # Recovery
    scanner: RecoveryScanner
    reconciler: RecoveryReconciler
    recovery_flow: RecoveryFlow

    # Scheduled tasks
    usage_monitor: UsageMonitor
    auto_backup: AutoBackupScheduler

    backup_service: BackupService
