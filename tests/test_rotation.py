"""Tests for BackupRotationPolicy."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from app.core.quota import StorageQuotaEstimator
from app.core.record_store import BackupRecordStore
from app.core.rotation import BackupRotationPolicy
from app.core.storage_backend import MemoryBackend
from app.models.backup_record import StorageUsage
from conftest import make_apps, make_record, record_size


@pytest.fixture
def five_records(store: BackupRecordStore) -> int:
    """Five equally sized records; returns the size of one."""
    for hours in range(5):
        store.append(make_record(hours, make_apps(2)))
    return record_size(make_record(0, make_apps(2)))


class TestMakeRoom:
    def test_nothing_to_do_below_threshold(self, store: BackupRecordStore, five_records: int) -> None:
        estimator = StorageQuotaEstimator(store, limit_bytes=five_records * 100)
        result = BackupRotationPolicy(store, estimator).make_room()
        assert result.evicted == []
        assert len(store.list()) == 5

    def test_evicts_until_below_threshold(self, store: BackupRecordStore, five_records: int) -> None:
        # 5 records at ~95% of the limit
        limit = int(five_records * 5 / 0.95)
        estimator = StorageQuotaEstimator(store, limit_bytes=limit)
        assert not estimator.estimate().can_backup

        result = BackupRotationPolicy(store, estimator).make_room()

        assert len(result.evicted) == 1
        assert result.satisfied
        assert estimator.estimate().can_backup
        assert [r.timestamp for r in store.list()] == [
            make_record(h, []).timestamp for h in (4, 3, 2, 1)
        ]

    def test_never_evicts_newest(self, store: BackupRecordStore, five_records: int) -> None:
        estimator = StorageQuotaEstimator(store, limit_bytes=five_records // 2)
        result = BackupRotationPolicy(store, estimator).make_room()

        assert len(result.evicted) == 4
        assert not result.satisfied
        remaining = store.list()
        assert len(remaining) == 1
        assert remaining[0].timestamp == make_record(4, []).timestamp

    def test_incoming_bytes_counted(self, store: BackupRecordStore, five_records: int) -> None:
        limit = five_records * 6
        estimator = StorageQuotaEstimator(store, limit_bytes=limit)
        policy = BackupRotationPolicy(store, estimator)

        usage = estimator.estimate()
        assert usage.can_backup
        assert policy.bytes_to_reclaim(usage, incoming_bytes=five_records * 2) == five_records
        result = policy.make_room(usage, incoming_bytes=five_records * 2)
        assert len(result.evicted) == 1

    def test_single_batch_eviction(self) -> None:
        store = MagicMock(spec=BackupRecordStore)
        store.entry_sizes.return_value = [(f"k{i}", 100) for i in range(5)]
        store.evict_oldest.return_value = ["k4", "k3", "k2"]
        estimator = StorageQuotaEstimator(MagicMock(), limit_bytes=300)
        estimator.estimate = MagicMock(return_value=MagicMock(used_bytes=500, estimated_limit_bytes=300))

        BackupRotationPolicy(store, estimator).make_room()

        # 500 - 269 = 231 bytes to reclaim -> three 100-byte records, one call
        store.evict_oldest.assert_called_once_with(3)

    def test_legacy_bytes_over_threshold_keep_history(
        self, backend: MemoryBackend, store: BackupRecordStore, five_records: int
    ) -> None:
        backend.set("jobTrackerBackup", "x" * (five_records * 20))
        estimator = StorageQuotaEstimator(store, limit_bytes=five_records * 21)
        assert not estimator.estimate().can_backup

        result = BackupRotationPolicy(store, estimator).make_room()

        assert result.evicted == []
        assert len(store.list()) == 5

    def test_pinned_bytes_only_pursue_incoming_fit(self, store: BackupRecordStore) -> None:
        estimator = StorageQuotaEstimator(store, limit_bytes=1000)
        policy = BackupRotationPolicy(store, estimator)
        usage = StorageUsage(used_bytes=1000, estimated_limit_bytes=1000)

        assert policy.bytes_to_reclaim(usage, incoming_bytes=50) == 101
        assert policy.bytes_to_reclaim(usage, incoming_bytes=50, pinned_bytes=950) == 50
        assert policy.bytes_to_reclaim(usage, pinned_bytes=950) == 0


class TestClearAll:
    def test_removes_everything(self, backend: MemoryBackend, store: BackupRecordStore, five_records: int) -> None:
        backend.set("jobTrackerBackups", "[]")
        policy = BackupRotationPolicy(store, StorageQuotaEstimator(store))
        assert policy.clear_all() == 6
        assert store.list() == []
