"""Ingestion paths: file import, manual entry, bulk grid, calendar edits, occurrences."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from delivery_ledger.core.errors import (
    FormValidationError,
    RecordNotFoundError,
    UnsupportedFormatError,
)
from delivery_ledger.core.logging import logger
from delivery_ledger.core.roster import DriverRoster, get_roster
from delivery_ledger.models.ledger import (
    BulkEntryRequest,
    CalendarCellEdit,
    CalendarEditResult,
    DeliveryRecord,
    ImportResponse,
    ManualEntryRequest,
    Occurrence,
    OccurrenceCreateRequest,
    RecordSource,
)
from delivery_ledger.services.extraction import ImageExtractionService, extraction_service, is_image
from delivery_ledger.services.normalizer import (
    build_bulk_records,
    build_calendar_candidate,
    build_manual_record,
    build_occurrence,
    is_iso_date,
    make_stable_id,
    normalize_batch,
    normalize_candidate,
    today_iso,
)
from delivery_ledger.services.record_store import RecordStore, record_store
from delivery_ledger.services.spreadsheet import is_spreadsheet, parse_spreadsheet


class IngestionService:
    """Turns every kind of user input into store mutations.

    File imports and forms append (dedup by id only). Calendar edits are the
    single natural-key upsert path.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        roster: Optional[DriverRoster] = None,
        extractor: Optional[ImageExtractionService] = None,
    ) -> None:
        self.store = store or record_store
        self.roster = roster or get_roster()
        self.extractor = extractor or extraction_service

    async def import_file(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        processed_date: Optional[str] = None,
    ) -> ImportResponse:
        """Parse a spreadsheet or photo and commit all of its rows, or none."""
        processed_date = (processed_date or "").strip() or today_iso()
        if not is_iso_date(processed_date):
            raise FormValidationError("Date must be a valid YYYY-MM-DD day", field="processed_date")

        suffix = Path(filename or "").suffix.lower()
        if is_spreadsheet(filename):
            source = RecordSource.SPREADSHEET
            candidates = parse_spreadsheet(content, filename)
            records = [
                normalize_candidate(
                    candidate,
                    processed_date,
                    make_stable_id(
                        "sheet", processed_date, filename, candidate["row"], candidate["driver"]
                    ),
                )
                for candidate in candidates
            ]
        elif is_image(filename, content_type):
            source = RecordSource.IMAGE
            rows = await self.extractor.extract_records(content, filename, content_type)
            records = normalize_batch(rows, processed_date, RecordSource.IMAGE)
        elif suffix == ".xls":
            raise UnsupportedFormatError(
                "Legacy .xls workbooks are not supported; save the file as .xlsx",
                source="spreadsheet",
            )
        else:
            raise UnsupportedFormatError(
                "Unsupported format. Use an Excel/CSV spreadsheet or a photo of the sheet.",
            )

        added = self.store.add_records(records)
        logger.info(
            "File imported",
            filename=filename,
            source=source.value,
            received=len(records),
            added=len(added),
        )
        return ImportResponse(
            source=source,
            filename=filename,
            processed_date=processed_date,
            received=len(records),
            added=len(added),
            skipped_duplicates=len(records) - len(added),
            record_ids=[record.id for record in added],
        )

    def submit_manual(self, request: ManualEntryRequest) -> DeliveryRecord:
        record = build_manual_record(request, self.roster)
        self.store.add_records([record])
        return record

    def submit_bulk(self, request: BulkEntryRequest) -> List[DeliveryRecord]:
        records = build_bulk_records(request, self.roster)
        return self.store.add_records(records)

    def edit_calendar_cell(self, edit: CalendarCellEdit) -> CalendarEditResult:
        template = self.store.get_record(edit.template_id)
        if template is None:
            raise RecordNotFoundError(edit.template_id)
        candidate = build_calendar_candidate(template, edit.date, edit.count)
        outcome, record = self.store.upsert_day_count(candidate)
        logger.info(
            "Calendar cell saved",
            driver=candidate.driver,
            date=candidate.processed_date,
            load=candidate.load,
            count=candidate.delivery_count,
            outcome=outcome,
        )
        return CalendarEditResult(action=outcome, record=record)

    def record_occurrence(self, request: OccurrenceCreateRequest) -> Occurrence:
        occurrence = build_occurrence(request, self.roster)
        return self.store.add_occurrence(occurrence)


ingestion_service = IngestionService()
