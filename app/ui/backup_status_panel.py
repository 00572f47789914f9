"""Backup status panel — storage usage, backup actions and the recovery prompt."""

from __future__ import annotations

from typing import TYPE_CHECKING

from PySide6.QtWidgets import QHBoxLayout, QVBoxLayout, QWidget
from qfluentwidgets import (
    BodyLabel,
    CaptionLabel,
    CardWidget,
    MessageBox,
    PrimaryPushButton,
    ProgressBar,
    PushButton,
    StrongBodyLabel,
)
from qfluentwidgets import FluentIcon as FIF

from app.core.errors import InvalidCandidate, StorageFull
from app.ui.utils import HEALTH_COLORS, format_age, format_backup_time, notify
from app.utils import format_size

if TYPE_CHECKING:
    from app.context import AppContext
    from app.core.scheduling import Subscription
    from app.models.backup_record import StorageUsage


class BackupStatusPanel(CardWidget):
    """Shows local backup usage and drives manual backup, clearing and recovery."""

    def __init__(self, ctx: AppContext, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._ctx = ctx
        self._service = ctx.backup_service

        layout = QVBoxLayout(self)
        layout.setContentsMargins(20, 16, 20, 16)
        layout.setSpacing(10)

        header = QHBoxLayout()
        header.addWidget(StrongBodyLabel("Storage Status", self))
        header.addStretch()
        self._percent_label = BodyLabel("", self)
        header.addWidget(self._percent_label)
        layout.addLayout(header)

        self._usage_bar = ProgressBar(self)
        self._usage_bar.setRange(0, 100)
        layout.addWidget(self._usage_bar)

        self._detail_label = CaptionLabel("", self)
        layout.addWidget(self._detail_label)
        self._latest_label = CaptionLabel("", self)
        layout.addWidget(self._latest_label)

        actions = QHBoxLayout()
        self._backup_btn = PrimaryPushButton(FIF.SAVE, "Back up now", self)
        self._backup_btn.clicked.connect(self._on_backup)
        actions.addWidget(self._backup_btn)

        self._recover_btn = PushButton(FIF.HISTORY, "Recover", self)
        self._recover_btn.clicked.connect(self._on_recover)
        actions.addWidget(self._recover_btn)

        actions.addStretch()
        self._clear_btn = PushButton(FIF.DELETE, "Clear backups", self)
        self._clear_btn.clicked.connect(self._on_clear)
        actions.addWidget(self._clear_btn)
        layout.addLayout(actions)

        self._subscription: Subscription = ctx.usage_monitor.subscribe(self._on_usage, owner=self)

    # ── Display ──

    def _on_usage(self, usage: StorageUsage) -> None:
        pct = usage.percentage_used
        self._usage_bar.setValue(min(100, int(pct)))
        self._percent_label.setText(f"{pct:.0f}% used")
        self._percent_label.setStyleSheet(f"color: {HEALTH_COLORS[usage.health]};")
        self._detail_label.setText(
            f"{format_size(usage.used_bytes)} of {format_size(usage.estimated_limit_bytes)} "
            f"({format_size(usage.available_bytes)} free)"
        )
        latest = self._service.latest_backup()
        if latest is None:
            self._latest_label.setText("No local backups yet")
        else:
            self._latest_label.setText(
                f"Latest backup: {format_backup_time(latest.timestamp)} "
                f"({format_age(latest.timestamp)}, {latest.count} applications)"
            )

    # ── Actions ──

    def _on_backup(self) -> None:
        result = self._service.create_manual_backup()
        if result.success:
            notify(self.window(), "success", "Backup created", f"{result.record.count} applications saved locally")
        elif isinstance(result.error, StorageFull):
            notify(self.window(), "warning", "Local storage full", "Clear old backups to free space")
        else:
            notify(self.window(), "error", "Backup unavailable", str(result.error))

    def _on_clear(self) -> None:
        box = MessageBox(
            "Clear all local backups?",
            "This frees storage space but removes every recovery option.",
            self.window(),
        )
        if not box.exec():
            return
        removed = self._service.clear_backups()
        notify(self.window(), "success", "Local backups cleared", f"{removed} entries removed")

    def _on_recover(self) -> None:
        candidates = self._service.list_recovery_candidates()
        if not candidates:
            notify(self.window(), "info", "Nothing to recover", "No recoverable data found in local storage")
            return
        self.offer_recovery(candidates[0].count, candidates[0].timestamp)

    def offer_recovery(self, count: int, timestamp: str | None) -> None:
        """Ask the user whether to restore the suggested candidate."""
        box = MessageBox(
            "Recover your applications?",
            f"A local backup from {format_backup_time(timestamp)} holds {count} applications. "
            "Restoring replaces the current list.",
            self.window(),
        )
        if not box.exec():
            if self._service.flow.is_prompting:
                self._service.dismiss_recovery()
            return
        try:
            restored = self._service.accept_recovery()
        except InvalidCandidate as e:
            notify(self.window(), "error", "Recovery failed", str(e))
            return
        notify(self.window(), "success", "Recovery complete", f"Recovered {len(restored)} applications")

    def check_recovery(self) -> None:
        """Run the recovery flow once the window is shown."""
        if self._service.check_recovery():
            best = self._service.flow.suggested
            if best is not None:
                self.offer_recovery(best.count, best.timestamp)
