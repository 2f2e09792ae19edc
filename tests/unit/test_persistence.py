"""Tests for snapshot/restore and the history stores."""

from __future__ import annotations

import json

import pytest

from conftest import make_source
from imgrelay.errors import PersistenceError
from imgrelay.models import Item, ItemStatus, PlaceholderSource, SnapshotRecord
from imgrelay.persistence import (
    HistoryStore,
    JsonFileHistoryStore,
    MemoryHistoryStore,
    restore,
    snapshot,
)

S = ItemStatus


def make_item(item_id: str, status: S, **fields) -> Item:
    source = make_source(f"{item_id}.png")
    return Item(id=item_id, source=source, status=status,
                original_size=source.size, **fields)


class TestSnapshot:
    def test_only_terminal_items(self):
        items = [
            make_item("a", S.COMPLETED, remote_ref="https://cdn.test/a",
                      processed_size=10, dimensions="800x800"),
            make_item("b", S.PENDING),
            make_item("c", S.PROCESSING),
            make_item("d", S.UPLOADING),
            make_item("e", S.ERROR, error_message="bad"),
        ]

        records = snapshot(items)

        assert [r.id for r in records] == ["a", "e"]
        assert records[0].remote_ref == "https://cdn.test/a"
        assert records[0].dimensions == "800x800"
        assert records[0].type == "image/png"
        assert records[0].size == items[0].original_size
        assert records[1].error_message == "bad"
        assert records[1].remote_ref is None

    def test_in_flight_become_interrupted(self):
        items = [
            make_item("a", S.PENDING),
            make_item("b", S.UPLOADING, processed_size=5, dimensions="10x10"),
        ]

        records = snapshot(items, include_in_flight=True)

        assert [(r.id, r.status, r.error_message) for r in records] == [
            ("a", S.ERROR, "interrupted"),
            ("b", S.ERROR, "interrupted"),
        ]
        assert all(r.remote_ref is None for r in records)

    def test_record_dict_omits_unset_fields(self):
        (record,) = snapshot([make_item("e", S.ERROR, error_message="bad")])
        data = record.to_dict()
        assert data["status"] == "ERROR"
        assert "remote_ref" not in data
        assert SnapshotRecord.from_dict(data) == record


class TestRestore:
    def test_placeholders_keep_metadata(self):
        records = [
            SnapshotRecord(id="a", name="a.png", size=100, type="image/png",
                           status=S.COMPLETED, remote_ref="https://cdn.test/a",
                           processed_size=40, dimensions="800x600"),
            SnapshotRecord(id="b", name="b.png", size=50, type="image/png",
                           status=S.ERROR, error_message="Invalid preset"),
        ]

        a, b = restore(records)

        assert isinstance(a.source, PlaceholderSource)
        assert not a.is_live
        assert (a.status, a.progress, a.remote_ref) == (S.COMPLETED, 100, "https://cdn.test/a")
        assert (a.original_size, a.processed_size, a.dimensions) == (100, 40, "800x600")
        assert (b.status, b.progress, b.error_message) == (S.ERROR, 0, "Invalid preset")

    @pytest.mark.parametrize("status", [S.PENDING, S.PROCESSING, S.UPLOADING])
    def test_non_terminal_records_become_interrupted(self, status):
        record = SnapshotRecord(id="x", name="x.png", size=1, type="image/png", status=status)
        (item,) = restore([record])
        assert item.status == S.ERROR
        assert item.error_message == "interrupted"

    def test_completed_without_ref_is_untrusted(self):
        record = SnapshotRecord(id="x", name="x.png", size=1, type="image/png",
                                status=S.COMPLETED)
        (item,) = restore([record])
        assert item.status == S.ERROR
        assert item.remote_ref is None


class TestMemoryHistoryStore:
    def test_round_trip_and_protocol(self):
        store = MemoryHistoryStore()
        assert isinstance(store, HistoryStore)
        assert store.load() == []
        record = SnapshotRecord(id="a", name="a.png", size=1, type="image/png",
                                status=S.ERROR, error_message="bad")
        store.save([record])
        assert store.load() == [record]


class TestJsonFileHistoryStore:
    def _record(self, item_id: str = "a") -> SnapshotRecord:
        return SnapshotRecord(id=item_id, name=f"{item_id}.png", size=12, type="image/png",
                              status=S.COMPLETED, remote_ref=f"https://cdn.test/{item_id}")

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileHistoryStore(tmp_path / "none.json").load() == []

    def test_save_creates_parents_and_loads_back(self, tmp_path):
        path = tmp_path / "nested" / "history.json"
        store = JsonFileHistoryStore(path)

        store.save([self._record("a"), self._record("b")])

        assert [r.id for r in store.load()] == ["a", "b"]
        data = json.loads(path.read_text())
        assert list(data) == ["imgrelay_history_v1"]
        assert data["imgrelay_history_v1"][0]["status"] == "COMPLETED"

    def test_preserves_other_keys(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text(json.dumps({"other": {"keep": True}}))

        JsonFileHistoryStore(path).save([self._record()])

        data = json.loads(path.read_text())
        assert data["other"] == {"keep": True}
        assert len(data["imgrelay_history_v1"]) == 1

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonFileHistoryStore(tmp_path / "history.json")
        store.save([self._record()])
        store.save([])
        assert [p.name for p in tmp_path.iterdir()] == ["history.json"]
        assert store.load() == []

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("{not json")
        with pytest.raises(PersistenceError) as exc_info:
            JsonFileHistoryStore(path).load()
        assert exc_info.value.context["path"] == str(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("[1, 2]")
        with pytest.raises(PersistenceError, match="not a JSON object"):
            JsonFileHistoryStore(path).load()

    def test_malformed_records(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text(json.dumps({"imgrelay_history_v1": [{"id": "a", "status": "WEIRD"}]}))
        with pytest.raises(PersistenceError, match="malformed"):
            JsonFileHistoryStore(path).load()

    def test_custom_key(self, tmp_path):
        path = tmp_path / "history.json"
        JsonFileHistoryStore(path, key="custom").save([self._record()])
        assert JsonFileHistoryStore(path).load() == []
        assert len(JsonFileHistoryStore(path, key="custom").load()) == 1
