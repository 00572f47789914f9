"""Timer-driven background tasks — storage usage refresh and automatic backups."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from loguru import logger
from PySide6.QtCore import QObject, QTimer, Signal

from app.models.backup_record import StorageUsage

if TYPE_CHECKING:
    from app.core.quota import StorageQuotaEstimator
    from app.core.writer import BackupResult, BackupWriter


class Subscription:
    """Handle for a usage subscription. Cancel it on teardown."""

    def __init__(self, monitor: UsageMonitor, callback: Callable[[StorageUsage], None]) -> None:
        self._monitor = monitor
        self._callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._monitor._unsubscribe(self._callback)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.cancel()


class UsageMonitor(QObject):
    """
    Publishes StorageUsage on a fixed interval and on demand.

    The timer runs only while at least one subscriber is attached.
    """

    usage_changed = Signal(object)  # StorageUsage

    def __init__(self, estimator: StorageQuotaEstimator, interval_seconds: int = 30, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._estimator = estimator
        self._subscribers: list[Callable[[StorageUsage], None]] = []
        self._timer = QTimer(self)
        self._timer.setInterval(interval_seconds * 1000)
        self._timer.timeout.connect(self.refresh)
        self._last: StorageUsage | None = None

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def last_usage(self) -> StorageUsage | None:
        return self._last

    def subscribe(
        self,
        callback: Callable[[StorageUsage], None],
        owner: QObject | None = None,
    ) -> Subscription:
        """
        Attach ``callback``; it receives the current usage immediately.

        With ``owner``, the subscription is cancelled when that object is
        destroyed. Child widgets never see a closeEvent of their own.
        """
        self._subscribers.append(callback)
        if not self._timer.isActive():
            self._timer.start()
        subscription = Subscription(self, callback)
        if owner is not None:
            owner.destroyed.connect(lambda *_: subscription.cancel())
        callback(self._measure())
        return subscription

    def _unsubscribe(self, callback: Callable[[StorageUsage], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)
        if not self._subscribers:
            self._timer.stop()

    def _measure(self) -> StorageUsage:
        self._last = self._estimator.estimate()
        return self._last

    def refresh(self) -> StorageUsage:
        usage = self._measure()
        for callback in list(self._subscribers):
            callback(usage)
        self.usage_changed.emit(usage)
        return usage

    def shutdown(self) -> None:
        """Cancel the timer and drop every subscriber."""
        for callback in list(self._subscribers):
            self._unsubscribe(callback)
        self._timer.stop()


class AutoBackupScheduler(QObject):
    """
    Automatic snapshots on a fixed cadence.

    ``stop(flush=True)`` takes one last snapshot, for application shutdown.
    """

    backup_finished = Signal(object)  # BackupResult

    def __init__(
        self,
        writer: BackupWriter,
        provider: Callable[[], list[dict[str, Any]]],
        interval_minutes: int = 30,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._writer = writer
        self._provider = provider
        self._interval_minutes = interval_minutes
        self._timer = QTimer(self)
        self._timer.setInterval(max(1, interval_minutes) * 60 * 1000)
        self._timer.timeout.connect(self.run_once)

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    def start(self, immediate: bool = True) -> None:
        if self._interval_minutes <= 0:
            logger.info("Automatic backups disabled")
            return
        self._timer.start()
        logger.info(f"Automatic backups every {self._interval_minutes} minutes")
        if immediate:
            self.run_once()

    def stop(self, flush: bool = False) -> None:
        was_running = self._timer.isActive()
        self._timer.stop()
        if flush and was_running:
            self.run_once()

    def run_once(self) -> BackupResult | None:
        try:
            applications = self._provider()
        except Exception as e:
            # The data layer is external; its failure must not stop the timer.
            logger.error(f"Automatic backup skipped, could not load applications: {e}")
            return None
        if not applications:
            # An empty snapshot would be the newest record and push real data toward eviction.
            logger.debug("Automatic backup skipped, no applications")
            return None
        result = self._writer.create_automatic(applications)
        self.backup_finished.emit(result)
        return result
