"""Shared fixtures."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from PySide6.QtCore import QCoreApplication

from app.core.record_store import BackupRecordStore
from app.core.schema import format_timestamp
from app.core.storage_backend import MemoryBackend
from app.models.backup_record import BackupRecord

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_apps(count: int, prefix: str = "Company") -> list[dict]:
    return [
        {
            "id": f"app-{i}",
            "company": f"{prefix} {i}",
            "position": "Engineer",
            "status": "Applied",
            "dateApplied": "2024-01-01",
        }
        for i in range(count)
    ]


def make_record(hours: int, apps: list[dict]) -> BackupRecord:
    return BackupRecord(
        applications=tuple(apps),
        timestamp=format_timestamp(BASE_TIME + timedelta(hours=hours)),
    )


def record_size(record: BackupRecord) -> int:
    return len(json.dumps(record.to_document(), ensure_ascii=False).encode("utf-8"))


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    """Qt application instance for timer-based objects."""
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> BackupRecordStore:
    return BackupRecordStore(backend)
