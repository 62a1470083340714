"""In-memory ledger of delivery records and occurrences with write-through snapshots."""
from __future__ import annotations

from threading import RLock
from typing import Iterable, List, Literal, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from delivery_ledger.core.config import get_settings
from delivery_ledger.core.logging import logger
from delivery_ledger.models.ledger import DeliveryRecord, Occurrence
from delivery_ledger.services.snapshot_store import SnapshotCorruptError, SnapshotStore


UpsertOutcome = Literal["updated", "created", "skipped"]

_records_adapter = TypeAdapter(List[DeliveryRecord])
_occurrences_adapter = TypeAdapter(List[Occurrence])


class RecordStore:
    """Owns both ledger collections.

    Collections keep insertion order; aggregation relies on it for
    last-helper/last-route attribution. Every mutation re-serializes the
    affected collection before returning. A failed write switches the store to
    memory-only mode instead of failing the request.
    """

    def __init__(
        self,
        snapshots: Optional[SnapshotStore] = None,
        records_key: Optional[str] = None,
        occurrences_key: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self._snapshots = snapshots or SnapshotStore(settings.data_dir)
        self._records_key = records_key or settings.records_snapshot_key
        self._occurrences_key = occurrences_key or settings.occurrences_snapshot_key
        self._lock = RLock()
        self._records: List[DeliveryRecord] = []
        self._occurrences: List[Occurrence] = []
        self.persistent = True
        self.load()

    # --- persistence --------------------------------------------------------

    def _read_collection(self, key: str, adapter: TypeAdapter) -> list:
        try:
            payload = self._snapshots.read(key)
        except SnapshotCorruptError as exc:
            logger.warning("Corrupt snapshot; starting empty", key=key, error=str(exc))
            return []
        except OSError as exc:
            logger.error("Snapshot unreadable; starting empty", key=key, error=str(exc))
            return []
        if payload is None:
            return []
        try:
            return adapter.validate_python(payload)
        except ValidationError as exc:
            logger.warning(
                "Snapshot failed validation; starting empty",
                key=key,
                errors=exc.error_count(),
            )
            return []

    def _write_collection(self, key: str, items: Iterable) -> None:
        payload = [item.model_dump(mode="json") for item in items]
        try:
            self._snapshots.write(key, payload)
        except OSError as exc:
            if self.persistent:
                logger.error(
                    "Snapshot write failed; continuing in memory-only mode",
                    key=key,
                    error=str(exc),
                )
            self.persistent = False

    def _save_records(self) -> None:
        self._write_collection(self._records_key, self._records)

    def _save_occurrences(self) -> None:
        self._write_collection(self._occurrences_key, self._occurrences)

    def load(self) -> Tuple[List[DeliveryRecord], List[Occurrence]]:
        """Restore both collections from the last snapshot."""
        with self._lock:
            self._records = self._read_collection(self._records_key, _records_adapter)
            self._occurrences = self._read_collection(self._occurrences_key, _occurrences_adapter)
            logger.info(
                "Ledger loaded",
                records=len(self._records),
                occurrences=len(self._occurrences),
            )
            return list(self._records), list(self._occurrences)

    # --- reads --------------------------------------------------------------

    @property
    def records(self) -> List[DeliveryRecord]:
        with self._lock:
            return list(self._records)

    @property
    def occurrences(self) -> List[Occurrence]:
        with self._lock:
            return list(self._occurrences)

    def get_record(self, record_id: str) -> Optional[DeliveryRecord]:
        with self._lock:
            for record in self._records:
                if record.id == record_id:
                    return record
        return None

    def find_day_record(self, driver: str, date: str, load: str) -> Optional[DeliveryRecord]:
        """First record, in insertion order, matching the calendar natural key."""
        with self._lock:
            for record in self._records:
                if record.driver == driver and record.processed_date == date and record.load == load:
                    return record
        return None

    # --- writes -------------------------------------------------------------

    def add_records(self, candidates: Iterable[DeliveryRecord]) -> List[DeliveryRecord]:
        """Append candidates whose id is not already stored; returns the appended ones."""
        with self._lock:
            existing_ids = {record.id for record in self._records}
            added: List[DeliveryRecord] = []
            for candidate in candidates:
                if candidate.id in existing_ids:
                    continue
                existing_ids.add(candidate.id)
                added.append(candidate)
            if added:
                self._records.extend(added)
                self._save_records()
        logger.info("Records added", added=len(added))
        return added

    def update_record(self, record: DeliveryRecord) -> bool:
        with self._lock:
            for index, current in enumerate(self._records):
                if current.id == record.id:
                    self._records[index] = record
                    self._save_records()
                    return True
        return False

    def delete_record(self, record_id: str) -> bool:
        with self._lock:
            remaining = [record for record in self._records if record.id != record_id]
            if len(remaining) == len(self._records):
                return False
            self._records = remaining
            self._save_records()
        logger.info("Record deleted", record_id=record_id)
        return True

    def add_occurrence(self, occurrence: Occurrence) -> Occurrence:
        with self._lock:
            self._occurrences.append(occurrence)
            self._save_occurrences()
        logger.info(
            "Occurrence added",
            occurrence_id=occurrence.id,
            driver=occurrence.driver,
            kind=occurrence.kind.value,
            count=occurrence.count,
        )
        return occurrence

    def upsert_day_count(
        self, candidate: DeliveryRecord
    ) -> Tuple[UpsertOutcome, Optional[DeliveryRecord]]:
        """Set the delivery count for (driver, processed_date, load).

        An existing match keeps its id and gets the candidate's count, zero
        included. Without a match the candidate is appended only when its
        count is positive.
        """
        with self._lock:
            existing = self.find_day_record(candidate.driver, candidate.processed_date, candidate.load)
            if existing is not None:
                updated = existing.model_copy(update={"delivery_count": candidate.delivery_count})
                self.update_record(updated)
                return "updated", updated
            if candidate.delivery_count > 0:
                self._records.append(candidate)
                self._save_records()
                return "created", candidate
        return "skipped", None

    def clear_all(self) -> None:
        with self._lock:
            self._records = []
            self._occurrences = []
            for key in (self._records_key, self._occurrences_key):
                try:
                    self._snapshots.erase(key)
                except OSError as exc:
                    logger.error("Snapshot erase failed", key=key, error=str(exc))
                    self.persistent = False
        logger.warning("Ledger cleared")


record_store = RecordStore()
