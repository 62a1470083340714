"""Unit tests for ledger persistence, id dedup and the calendar upsert."""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


TMP = Path(__file__).resolve().parent / ".tmp_ledger"
TMP.mkdir(parents=True, exist_ok=True)
os.environ["DATA_DIR"] = str(TMP / "data")
os.environ["ROSTER_PATH"] = ""

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from delivery_ledger.models.ledger import DeliveryRecord, Occurrence, OccurrenceKind  # noqa: E402
from delivery_ledger.services.record_store import RecordStore  # noqa: E402
from delivery_ledger.services.snapshot_store import SnapshotStore  # noqa: E402


def _record(record_id: str, day: str = "2024-05-10", count: int = 5, load: str = "881") -> DeliveryRecord:
    return DeliveryRecord(
        id=record_id,
        processed_date=day,
        plate="KLM4E21",
        driver="EDGAR",
        route="OLINDA",
        load=load,
        delivery_count=count,
        value=120.5,
        month=day[:7],
    )


def _store(directory: Path) -> RecordStore:
    return RecordStore(snapshots=SnapshotStore(directory), records_key="records", occurrences_key="occurrences")


class FailingSnapshots(SnapshotStore):
    def write(self, key, value):
        raise OSError("disk full")


def test_add_records_skips_ids_already_stored(tmp_path):
    store = _store(tmp_path)

    first = store.add_records([_record("a"), _record("b")])
    second = store.add_records([_record("b"), _record("c"), _record("c")])

    assert [record.id for record in first] == ["a", "b"]
    assert [record.id for record in second] == ["c"]
    assert [record.id for record in store.records] == ["a", "b", "c"]


def test_update_and_delete_of_unknown_ids_are_noops(tmp_path):
    store = _store(tmp_path)
    store.add_records([_record("a")])

    assert store.update_record(_record("missing", count=99)) is False
    assert store.delete_record("missing") is False
    assert [record.id for record in store.records] == ["a"]

    assert store.update_record(_record("a", count=12)) is True
    assert store.get_record("a").delivery_count == 12
    assert store.delete_record("a") is True
    assert store.records == []


def test_occurrences_are_appended_without_dedup(tmp_path):
    store = _store(tmp_path)
    occurrence = Occurrence(id="o1", driver="EDGAR", date="2024-05-10", kind=OccurrenceKind.RETURN, count=2)

    store.add_occurrence(occurrence)
    store.add_occurrence(occurrence)

    assert len(store.occurrences) == 2


def test_snapshots_survive_reload_in_insertion_order(tmp_path):
    store = _store(tmp_path)
    store.add_records([_record("z", day="2024-05-20"), _record("a", day="2024-05-01")])
    store.add_occurrence(
        Occurrence(id="o1", driver="EDGAR", date="2024-05-11", kind=OccurrenceKind.CHARGEBACK, count=1, value=30)
    )

    reloaded = _store(tmp_path)

    assert [record.id for record in reloaded.records] == ["z", "a"]
    assert reloaded.occurrences[0].kind == OccurrenceKind.CHARGEBACK
    assert reloaded.persistent is True


def test_corrupt_snapshot_loads_as_empty(tmp_path):
    (tmp_path / "records.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "occurrences.json").write_text('[{"id": "o1"}]', encoding="utf-8")

    store = _store(tmp_path)

    assert store.records == []
    assert store.occurrences == []


def test_failed_write_switches_to_memory_only(tmp_path):
    store = RecordStore(snapshots=FailingSnapshots(tmp_path), records_key="records", occurrences_key="occurrences")

    added = store.add_records([_record("a")])

    assert [record.id for record in added] == ["a"]
    assert store.persistent is False
    assert [record.id for record in store.records] == ["a"]


def test_clear_all_erases_both_snapshots(tmp_path):
    store = _store(tmp_path)
    store.add_records([_record("a")])
    store.add_occurrence(Occurrence(id="o1", driver="EDGAR", date="2024-05-10", kind=OccurrenceKind.RETURN))

    store.clear_all()

    assert store.records == []
    assert store.occurrences == []
    assert not (tmp_path / "records.json").exists()
    assert _store(tmp_path).records == []


def test_calendar_upsert_updates_existing_match_even_to_zero(tmp_path):
    store = _store(tmp_path)
    store.add_records([_record("a", day="2024-05-10", count=5)])

    outcome, record = store.upsert_day_count(_record("new-id", day="2024-05-10", count=0))

    assert outcome == "updated"
    assert record.id == "a"
    assert record.delivery_count == 0
    assert len(store.records) == 1


def test_calendar_upsert_creates_only_positive_counts(tmp_path):
    store = _store(tmp_path)

    assert store.upsert_day_count(_record("zero", count=0)) == ("skipped", None)
    outcome, record = store.upsert_day_count(_record("seven", count=7))

    assert outcome == "created"
    assert record.id == "seven"
    assert [r.id for r in store.records] == ["seven"]


def test_calendar_upsert_first_match_wins_when_key_is_duplicated(tmp_path):
    store = _store(tmp_path)
    store.add_records([_record("first", count=3), _record("second", count=4)])

    outcome, record = store.upsert_day_count(_record("edit", count=9))

    assert outcome == "updated"
    assert record.id == "first"
    assert [r.delivery_count for r in store.records] == [9, 4]


def test_snapshot_store_rejects_unsafe_keys(tmp_path):
    snapshots = SnapshotStore(tmp_path)

    with pytest.raises(ValueError):
        snapshots.write("../escape", [])
    assert snapshots.read("never_written") is None
