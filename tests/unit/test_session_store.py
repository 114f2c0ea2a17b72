from __future__ import annotations
import json
from datetime import timedelta
import pytest
from stock_audit.models.column_mapping import ColumnMapping
from stock_audit.models.material_item import MaterialItem
from stock_audit.models.session_record import SavedCount, SessionCorruption, SessionRecord
from stock_audit.services.column_mapper import confirm_mapping, suggest_mapping
from stock_audit.services.material_index import MaterialIndex
from stock_audit.services.session_store import SessionStore, compute_identity, format_age

MAPPING = ColumnMapping(code=0, description=1, system_qty=2, uom=3, rate=4, physical_qty=5, remarks=6)


def _items() -> list[MaterialItem]:
    return [
        MaterialItem.from_snapshot(1, "AB100", "Steel bolt", "100", "EA", "5", physical_qty="80", remarks="short"),
        MaterialItem.from_snapshot(3, "CD200", "Cabinet hinge", "40", "EA", "2.5"),
    ]


def _record(stamp, materials=None) -> str:
    return SessionRecord(
        file_name="stock.xlsx",
        file_hash=compute_identity("stock.xlsx"),
        mapping=MAPPING,
        materials=materials or {1: SavedCount("5", "")},
        timestamp=stamp,
    ).to_json()


def test_save_then_load(store, memory_storage, fixed_now):
    assert store.save(MAPPING, _items(), "stock.xlsx", compute_identity("stock.xlsx"))
    record = store.load()
    assert record is not None
    assert record.file_name == "stock.xlsx"
    assert record.mapping == MAPPING
    assert record.materials == {1: SavedCount("80", "short"), 3: SavedCount("", "")}
    assert record.timestamp == fixed_now
    assert json.loads(memory_storage.blob)["timestamp"] == "2026-10-17T12:00:00Z"


def test_save_is_noop_without_items_or_name(store, memory_storage):
    assert store.save(MAPPING, [], "stock.xlsx", "x") is False
    assert store.save(MAPPING, _items(), "", "x") is False
    assert memory_storage.blob is None


def test_expired_session_is_deleted(store, memory_storage, fixed_now):
    memory_storage.blob = _record(fixed_now - timedelta(hours=49))
    assert store.load() is None
    assert memory_storage.blob is None


def test_recent_session_is_kept(store, memory_storage, fixed_now):
    memory_storage.blob = _record(fixed_now - timedelta(hours=47))
    record = store.load()
    assert record is not None
    assert memory_storage.blob is not None
    assert format_age(record.age(fixed_now)) == "1 days ago"


def test_max_age_is_configurable(memory_storage, fixed_now):
    store = SessionStore(memory_storage, max_age=timedelta(hours=1), clock=lambda: fixed_now)
    memory_storage.blob = _record(fixed_now - timedelta(hours=2))
    assert store.load() is None


@pytest.mark.parametrize(
    "blob",
    [
        "{not json",
        "[]",
        json.dumps({"fileName": "a.xlsx", "fileHash": "x", "mappings": {}, "materials": {}}),
        json.dumps({"fileName": "a.xlsx", "fileHash": "x", "mappings": {}, "materials": {}, "timestamp": "yesterday"}),
        json.dumps({"fileName": "a.xlsx", "fileHash": "x", "mappings": {"code": "A"}, "materials": {}, "timestamp": "2026-10-17T11:00:00Z"}),
    ],
)
def test_corrupt_session_reads_as_absent(store, memory_storage, blob):
    memory_storage.blob = blob
    assert store.load() is None
    # left in place, the next save overwrites it
    assert memory_storage.blob == blob


def test_from_json_raises_corruption():
    with pytest.raises(SessionCorruption):
        SessionRecord.from_json('{"fileName": 3}')


def test_null_counts_read_as_empty(fixed_now):
    payload = json.loads(_record(fixed_now))
    payload["materials"]["1"] = {"rowIndex": 1, "physicalQty": None, "remarks": None}
    record = SessionRecord.from_json(json.dumps(payload))
    assert record.materials[1] == SavedCount("", "")


def test_restore_into_ignores_unmatched_rows(store, buffer):
    mapping = confirm_mapping(buffer, suggest_mapping(buffer.headers))
    index = MaterialIndex(buffer)
    index.build(mapping)
    record = SessionRecord(
        file_name="stock.xlsx",
        file_hash="x",
        mapping=mapping,
        materials={1: SavedCount("90", "ok"), 2: SavedCount("3", ""), 99: SavedCount("1", "")},
        timestamp=store.now(),
    )
    assert store.restore_into(index, record) == 1
    assert index.get(1).physical_qty == "90"
    assert buffer.get(1, mapping.physical_qty) == "90"
    assert 2 not in index


def test_clear_removes_session(store, memory_storage):
    store.save(MAPPING, _items(), "stock.xlsx", "x")
    store.clear()
    assert store.load() is None


def test_identity_depends_on_name_only():
    assert compute_identity("stock.xlsx") == compute_identity("stock.xlsx")
    assert compute_identity("stock.xlsx") != compute_identity("stock2.xlsx")
    assert len(compute_identity("stock.xlsx")) == 16


def test_format_age():
    assert format_age(timedelta(minutes=5)) == "5 minutes ago"
    assert format_age(timedelta(hours=3, minutes=10)) == "3 hours ago"
    assert format_age(timedelta(hours=50)) == "2 days ago"
