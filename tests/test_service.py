"""Tests for BackupService and the JSON application source."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from app.core.quota import StorageQuotaEstimator
from app.core.record_store import BackupRecordStore
from app.core.recovery import RecoveryFlow, RecoveryReconciler, RecoveryScanner, RecoveryState
from app.core.rotation import BackupRotationPolicy
from app.core.service import BackupService
from app.core.storage_backend import MemoryBackend
from app.core.writer import BackupWriter
from app.data.applications import JsonApplicationSource
from conftest import make_apps


@pytest.fixture
def source(tmp_path: Path) -> JsonApplicationSource:
    return JsonApplicationSource(tmp_path / "data")


@pytest.fixture
def monitor() -> MagicMock:
    return MagicMock()


@pytest.fixture
def service(source: JsonApplicationSource, store: BackupRecordStore, monitor: MagicMock) -> BackupService:
    estimator = StorageQuotaEstimator(store)
    rotation = BackupRotationPolicy(store, estimator)
    reconciler = RecoveryReconciler(RecoveryScanner(store))
    return BackupService(
        source=source,
        store=store,
        estimator=estimator,
        rotation=rotation,
        writer=BackupWriter(store, estimator, rotation),
        reconciler=reconciler,
        flow=RecoveryFlow(reconciler),
        monitor=monitor,
    )


class TestJsonApplicationSource:
    def test_missing_file(self, source: JsonApplicationSource) -> None:
        assert source.get_applications() == []

    def test_replace_and_read(self, source: JsonApplicationSource) -> None:
        source.replace_applications(make_apps(3))
        assert source.get_applications() == make_apps(3)

    def test_malformed_file(self, source: JsonApplicationSource) -> None:
        source.path.parent.mkdir(parents=True)
        source.path.write_text("{not a list", encoding="utf-8")
        assert source.get_applications() == []

    def test_unexpected_layout(self, source: JsonApplicationSource) -> None:
        source.path.parent.mkdir(parents=True)
        source.path.write_text(json.dumps({"applications": []}), encoding="utf-8")
        assert source.get_applications() == []


class TestBackupService:
    def test_manual_backup_snapshots_source(
        self, service: BackupService, source: JsonApplicationSource, store: BackupRecordStore, monitor: MagicMock
    ) -> None:
        source.replace_applications(make_apps(4))
        result = service.create_manual_backup()

        assert result.success
        assert store.latest().count == 4
        monitor.refresh.assert_called_once()

    def test_storage_usage_and_latest(self, service: BackupService, source: JsonApplicationSource) -> None:
        assert service.latest_backup() is None
        source.replace_applications(make_apps(1))
        service.create_manual_backup()
        assert service.storage_usage().used_bytes > 0
        assert service.latest_backup().count == 1

    def test_failed_backup_leaves_source_intact(
        self, service: BackupService, source: JsonApplicationSource, backend: MemoryBackend
    ) -> None:
        source.replace_applications(make_apps(2))
        backend.available = False

        result = service.create_manual_backup()

        assert not result.success
        assert service.latest_backup() is None
        assert source.get_applications() == make_apps(2)

    def test_clear_backups(
        self, service: BackupService, source: JsonApplicationSource, store: BackupRecordStore, monitor: MagicMock
    ) -> None:
        source.replace_applications(make_apps(1))
        service.create_manual_backup()
        service.create_manual_backup()

        assert service.clear_backups() == 2
        assert store.list() == []
        assert monitor.refresh.call_count == 3

    def test_recovery_round_trip(self, service: BackupService, source: JsonApplicationSource) -> None:
        source.replace_applications(make_apps(3))
        service.create_manual_backup()
        source.replace_applications([])  # data loss

        assert service.check_recovery()
        assert len(service.list_recovery_candidates()) == 1
        restored = service.accept_recovery()

        assert service.flow.state is RecoveryState.ACCEPTED
        assert len(restored) == 3
        assert [a["company"] for a in source.get_applications()] == [a["company"] for a in make_apps(3)]

    def test_no_prompt_with_live_data(self, service: BackupService, source: JsonApplicationSource) -> None:
        source.replace_applications(make_apps(3))
        service.create_manual_backup()
        assert not service.check_recovery()
        assert service.flow.state is RecoveryState.IDLE

    def test_dismiss(self, service: BackupService, source: JsonApplicationSource) -> None:
        source.replace_applications(make_apps(1))
        service.create_manual_backup()
        source.replace_applications([])

        assert service.check_recovery()
        service.dismiss_recovery()
        assert not service.check_recovery()
        assert source.get_applications() == []

    def test_manual_recovery_outside_prompt(self, service: BackupService, source: JsonApplicationSource) -> None:
        source.replace_applications(make_apps(2))
        service.create_manual_backup()
        candidate = service.list_recovery_candidates()[0]

        restored = service.accept_recovery(candidate)

        assert len(restored) == 2
        assert service.flow.state is RecoveryState.IDLE

    def test_stats(self, service: BackupService, source: JsonApplicationSource) -> None:
        source.replace_applications(make_apps(2))
        service.create_manual_backup()
        stats = service.recovery_stats()
        assert stats.total_options == 1
        assert stats.total_applications == 2
