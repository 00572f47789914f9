"""Application entry point — wires services and launches the UI."""

from __future__ import annotations

import sys

from loguru import logger
from PySide6.QtWidgets import QApplication

from app.config import Config, get_config
from app.context import AppContext
from app.core.quota import StorageQuotaEstimator
from app.core.record_store import BackupRecordStore
from app.core.recovery import RecoveryFlow, RecoveryReconciler, RecoveryScanner
from app.core.rotation import BackupRotationPolicy
from app.core.scheduling import AutoBackupScheduler, UsageMonitor
from app.core.service import BackupService
from app.core.storage_backend import FileBackend, StorageBackend
from app.core.writer import BackupWriter
from app.data.applications import ApplicationSource, JsonApplicationSource
from app.logger import setup_logger
from app.ui.main_window import MainWindow
from app.ui.theme import apply_theme


def create_context(
    config: Config | None = None,
    backend: StorageBackend | None = None,
    source: ApplicationSource | None = None,
) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Logger
    setup_logger(config.data_dir / "logs")

    # Storage
    backend = backend or FileBackend(config.backup_dir, capacity_bytes=config.quota_bytes)
    source = source or JsonApplicationSource(config.data_dir)
    store = BackupRecordStore(backend)
    estimator = StorageQuotaEstimator(
        store,
        limit_bytes=config.quota_bytes,
        critical_percent=config.critical_percent,
        warning_percent=config.warning_percent,
    )
    rotation = BackupRotationPolicy(store, estimator)
    writer = BackupWriter(store, estimator, rotation, notes_max_length=config.notes_max_length)

    # Recovery
    scanner = RecoveryScanner(store, max_age_days=config.max_backup_age_days)
    reconciler = RecoveryReconciler(scanner)
    flow = RecoveryFlow(reconciler)

    # Scheduled tasks
    usage_monitor = UsageMonitor(estimator, interval_seconds=config.usage_refresh_seconds)
    auto_backup = AutoBackupScheduler(
        writer,
        source.get_applications,
        interval_minutes=config.auto_backup_interval_minutes,
    )
    auto_backup.backup_finished.connect(lambda _result: usage_monitor.refresh())

    backup_service = BackupService(
        source=source,
        store=store,
        estimator=estimator,
        rotation=rotation,
        writer=writer,
        reconciler=reconciler,
        flow=flow,
        monitor=usage_monitor,
    )

    return AppContext(
        config=config,
        source=source,
        backend=backend,
        store=store,
        estimator=estimator,
        rotation=rotation,
        writer=writer,
        scanner=scanner,
        reconciler=reconciler,
        recovery_flow=flow,
        usage_monitor=usage_monitor,
        auto_backup=auto_backup,
        backup_service=backup_service,
    )


def main() -> int:
    """Application entry point."""
    app = QApplication(sys.argv)
    app.setApplicationName("ApplyTrak Backup")
    app.setOrganizationName("ApplyTrak")

    # Wire services
    ctx = create_context()
    apply_theme(ctx.config.theme)

    # Create and show main window
    window = MainWindow(ctx)
    window.show()

    ctx.auto_backup.start(immediate=False)
    logger.info(f"Backups stored in {ctx.config.backup_dir}")

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
