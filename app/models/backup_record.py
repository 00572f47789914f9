"""Backup record models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

ApplicationSnapshot = dict[str, Any]

CURRENT_SCHEMA_VERSION = "1.0"


class BackupTrigger(StrEnum):
    """Why a backup was taken."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class StorageHealth(StrEnum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class BackupRecord:
    """Immutable point-in-time snapshot of the user's applications."""

    applications: tuple[ApplicationSnapshot, ...]
    timestamp: str  # ISO-8601, UTC
    schema_version: str = CURRENT_SCHEMA_VERSION
    key: str = ""  # Storage key, assigned by the store

    @property
    def count(self) -> int:
        return len(self.applications)

    def to_document(self) -> dict[str, Any]:
        """Canonical JSON document for persistence."""
        return {
            "applications": [dict(app) for app in self.applications],
            "timestamp": self.timestamp,
            "version": self.schema_version,
        }


@dataclass(frozen=True)
class StorageUsage:
    """Computed view of local backup storage consumption."""

    used_bytes: int
    estimated_limit_bytes: int
    critical_percent: float = 90.0
    warning_percent: float = 75.0

    @property
    def available_bytes(self) -> int:
        return max(0, self.estimated_limit_bytes - self.used_bytes)

    @property
    def percentage_used(self) -> float:
        # Not clamped: values above 100 signal overage.
        if self.estimated_limit_bytes <= 0:
            return 0.0 if self.used_bytes == 0 else float("inf")
        return self.used_bytes * 100 / self.estimated_limit_bytes

    @property
    def can_backup(self) -> bool:
        return self.percentage_used < self.critical_percent

    @property
    def health(self) -> StorageHealth:
        pct = self.percentage_used
        if pct >= self.critical_percent:
            return StorageHealth.CRITICAL
        if pct >= self.warning_percent:
            return StorageHealth.WARNING
        return StorageHealth.GOOD


@dataclass(frozen=True)
class RecoveryCandidate:
    """Normalized, validated snapshot eligible for restoring data."""

    applications: tuple[ApplicationSnapshot, ...]
    timestamp: str | None
    parsed_at: datetime | None
    schema_version: str
    source: str  # Storage key, with "[i]" suffix for list-valued legacy keys
    variant: str

    @property
    def count(self) -> int:
        return len(self.applications)


@dataclass
class RecoveryStats:
    """Summary of what a recovery scan found."""

    total_options: int = 0
    total_applications: int = 0
    sources: list[str] = field(default_factory=list)
    latest_backup: str | None = None
