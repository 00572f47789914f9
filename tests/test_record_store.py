"""Tests for the BackupRecordStore."""

from __future__ import annotations

import json

import pytest

from app.core.errors import StorageFull, StorageUnavailable
from app.core.record_store import LEGACY_KEYS, RECORD_PREFIX, BackupRecordStore
from app.core.storage_backend import MemoryBackend
from conftest import make_apps, make_record, record_size


@pytest.fixture
def filled(store: BackupRecordStore) -> BackupRecordStore:
    for hours in (3, 1, 4, 0, 2):  # appended out of order on purpose
        store.append(make_record(hours, make_apps(hours + 1)))
    return store


class TestListing:
    def test_empty(self, store: BackupRecordStore) -> None:
        assert store.list() == []
        assert store.latest() is None

    def test_newest_first(self, filled: BackupRecordStore) -> None:
        counts = [r.count for r in filled.list()]
        assert counts == [5, 4, 3, 2, 1]

    def test_records_carry_keys(self, filled: BackupRecordStore) -> None:
        for record in filled.list():
            assert record.key == RECORD_PREFIX + record.timestamp

    def test_corrupt_entries_skipped(self, backend: MemoryBackend, filled: BackupRecordStore) -> None:
        backend.set(RECORD_PREFIX + "broken", "{not json")
        backend.set(RECORD_PREFIX + "shapeless", json.dumps({"hello": "world"}))
        backend.set(RECORD_PREFIX + "no-time", json.dumps({"applications": []}))
        assert len(filled.list()) == 5

    def test_legacy_keys_not_listed(self, backend: MemoryBackend, store: BackupRecordStore) -> None:
        backend.set("jobTrackerBackup", json.dumps({"apps": make_apps(1), "ts": "2023-01-01T00:00:00Z"}))
        assert store.list() == []
        assert store.legacy_entries()[0][0] == "jobTrackerBackup"


class TestAppend:
    def test_round_trip(self, store: BackupRecordStore) -> None:
        apps = make_apps(7)
        apps[3]["notes"] = "Follow up on Friday"
        apps[4]["salary"] = "€80k"
        store.append(make_record(0, apps))

        latest = store.latest()
        assert latest is not None
        assert latest.count == 7
        assert list(latest.applications) == apps

    def test_append_returns_keyed_copy(self, store: BackupRecordStore) -> None:
        record = make_record(0, make_apps(1))
        stored = store.append(record)
        assert record.key == ""
        assert stored.key.startswith(RECORD_PREFIX)
        assert stored.applications == record.applications

    def test_canonical_document(self, backend: MemoryBackend, store: BackupRecordStore) -> None:
        stored = store.append(make_record(0, make_apps(2)))
        doc = json.loads(backend.get(stored.key))
        assert set(doc) == {"applications", "timestamp", "version"}
        assert doc["version"] == "1.0"

    def test_storage_full_propagates(self) -> None:
        record = make_record(0, make_apps(3))
        store = BackupRecordStore(MemoryBackend(capacity_bytes=record_size(record) - 1))
        with pytest.raises(StorageFull):
            store.append(record)
        assert store.list() == []

    def test_unavailable_propagates(self, backend: MemoryBackend, store: BackupRecordStore) -> None:
        backend.available = False
        with pytest.raises(StorageUnavailable):
            store.append(make_record(0, make_apps(1)))


class TestEviction:
    @pytest.mark.parametrize("n", [0, 1, 2, 4, 5, 50])
    def test_size_after_eviction(self, filled: BackupRecordStore, n: int) -> None:
        size = len(filled.list())
        newest = filled.latest()
        filled.evict_oldest(n)
        remaining = filled.list()
        assert len(remaining) == size - min(n, size - 1)
        assert remaining[0] == newest

    def test_evicts_oldest_first(self, filled: BackupRecordStore) -> None:
        evicted = filled.evict_oldest(2)
        assert [r.count for r in filled.list()] == [5, 4, 3]
        assert len(evicted) == 2

    def test_single_record_survives(self, store: BackupRecordStore) -> None:
        store.append(make_record(0, make_apps(1)))
        assert store.evict_oldest(10) == []
        assert len(store.list()) == 1

    def test_entry_sizes_match_payloads(self, filled: BackupRecordStore) -> None:
        sizes = filled.entry_sizes()
        for (key, size), record in zip(sizes, filled.list()):
            assert key == record.key
            assert size == record_size(record)


class TestClear:
    def test_clear_removes_records_and_legacy(self, backend: MemoryBackend, filled: BackupRecordStore) -> None:
        for key in LEGACY_KEYS:
            backend.set(key, "[]")
        backend.set("unrelated", "keep me")

        removed = filled.clear()

        assert removed == 5 + len(LEGACY_KEYS)
        assert filled.list() == []
        assert filled.legacy_entries() == []
        assert backend.get("unrelated") == "keep me"
