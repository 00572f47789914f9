"""Main window — FluentWindow hosting the backup page."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PySide6.QtCore import QSize, QTimer
from PySide6.QtWidgets import QVBoxLayout, QWidget
from qfluentwidgets import FluentIcon as FIF
from qfluentwidgets import FluentWindow, SubtitleLabel

from app.ui.backup_status_panel import BackupStatusPanel

if TYPE_CHECKING:
    from app.context import AppContext


class BackupPage(QWidget):
    def __init__(self, ctx: AppContext, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setObjectName("backupPage")
        layout = QVBoxLayout(self)
        layout.setContentsMargins(36, 24, 36, 24)
        layout.addWidget(SubtitleLabel("Local Backups", self))
        self.panel = BackupStatusPanel(ctx, self)
        layout.addWidget(self.panel)
        layout.addStretch()


class MainWindow(FluentWindow):
    """Application main window."""

    def __init__(self, ctx: AppContext) -> None:
        super().__init__()
        self._ctx = ctx

        self.setWindowTitle("ApplyTrak Backup")
        self.setMinimumSize(QSize(720, 480))
        self.resize(900, 600)

        self._backup_page = BackupPage(ctx, self)
        self.addSubInterface(self._backup_page, FIF.SAVE, "Backups")

        # Offer recovery after the window is on screen.
        QTimer.singleShot(0, self._backup_page.panel.check_recovery)

    def closeEvent(self, event) -> None:  # noqa: N802
        self._ctx.auto_backup.stop(flush=True)
        self._ctx.usage_monitor.shutdown()
        super().closeEvent(event)
