"""UI utility functions — shared helpers for the UI layer."""

from __future__ import annotations

from datetime import datetime

from PySide6.QtWidgets import QWidget
from qfluentwidgets import InfoBar, InfoBarPosition

from app.core.schema import parse_timestamp
from app.models.backup_record import StorageHealth

HEALTH_COLORS = {
    StorageHealth.GOOD: "#16a34a",
    StorageHealth.WARNING: "#ca8a04",
    StorageHealth.CRITICAL: "#dc2626",
}

# InfoBar factory name → display duration (ms)
_DURATIONS = {"success": 3000, "info": 3000, "warning": 4000, "error": 5000}


def notify(parent: QWidget, level: str, title: str, content: str = "") -> None:
    """Show a top-right InfoBar; ``level`` is success / info / warning / error."""
    factory = getattr(InfoBar, level)
    factory(
        title=title,
        content=content,
        orient=1,  # Vertical
        isClosable=True,
        position=InfoBarPosition.TOP_RIGHT,
        duration=_DURATIONS.get(level, 3000),
        parent=parent,
    )


def format_backup_time(timestamp: str | None) -> str:
    """Local, human-readable form of a stored timestamp."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return "Unknown time"
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M")


def format_age(timestamp: str | None, now: datetime | None = None) -> str:
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return ""
    now = now or datetime.now(tz=parsed.tzinfo)
    minutes = int((now - parsed).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} min ago"
    if minutes < 24 * 60:
        return f"{minutes // 60} h ago"
    return f"{minutes // (24 * 60)} d ago"
