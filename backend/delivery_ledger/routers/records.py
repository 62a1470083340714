"""API routes for delivery record entry, import, history and removal."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile

from delivery_ledger.core.config import get_settings
from delivery_ledger.core.errors import (
    FormValidationError,
    IngestionError,
    RecordNotFoundError,
    UnsupportedFormatError,
)
from delivery_ledger.core.logging import logger
from delivery_ledger.models.ledger import (
    BulkEntryRequest,
    CalendarCellEdit,
    CalendarEditResult,
    DeliveryRecord,
    ImportResponse,
    ManualEntryRequest,
    RecordHistoryResponse,
)
from delivery_ledger.services import aggregation
from delivery_ledger.services.ingestion import ingestion_service
from delivery_ledger.services.record_store import record_store

router = APIRouter(prefix="/records", tags=["records"])


def _validation_error(exc: FormValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail={"message": exc.message, "field": exc.field})


@router.get("", response_model=RecordHistoryResponse)
def list_records(
    search: str = Query(default=""),
    page: int = Query(default=1, ge=1),
):
    settings = get_settings()
    return aggregation.search_history(
        record_store.records,
        search=search,
        page=page,
        page_size=settings.history_page_size,
    )


@router.post("/manual", response_model=DeliveryRecord)
def create_manual_record(request: ManualEntryRequest):
    """Launch a single extra load."""
    try:
        return ingestion_service.submit_manual(request)
    except FormValidationError as exc:
        raise _validation_error(exc)


@router.post("/bulk")
def create_bulk_records(request: BulkEntryRequest) -> dict:
    """Save the same-day grid; drivers with no positive count are skipped."""
    try:
        added = ingestion_service.submit_bulk(request)
    except FormValidationError as exc:
        raise _validation_error(exc)
    return {"added": len(added), "records": [record.model_dump() for record in added]}


@router.put("/calendar-cell", response_model=CalendarEditResult)
def edit_calendar_cell(edit: CalendarCellEdit):
    try:
        return ingestion_service.edit_calendar_cell(edit)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except FormValidationError as exc:
        raise _validation_error(exc)


@router.post("/import", response_model=ImportResponse)
async def import_records(
    file: UploadFile = File(...),
    processed_date: Optional[str] = Form(None),
):
    """Import a spreadsheet (xlsx/csv) or a photo of one."""
    settings = get_settings()
    content = await file.read()
    if len(content) > settings.max_upload_size:
        raise HTTPException(status_code=413, detail="File too large")
    if not content:
        raise HTTPException(status_code=422, detail="Uploaded file is empty")

    try:
        return await ingestion_service.import_file(
            content,
            filename=file.filename or "",
            content_type=file.content_type,
            processed_date=processed_date,
        )
    except UnsupportedFormatError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except IngestionError as exc:
        logger.warning("Import aborted", filename=file.filename, error=exc.message)
        raise HTTPException(status_code=422, detail=exc.message)
    except FormValidationError as exc:
        raise _validation_error(exc)


@router.delete("/{record_id}")
def delete_record(record_id: str) -> dict:
    if not record_store.delete_record(record_id):
        raise HTTPException(status_code=404, detail="Record not found")
    return {"message": "Record deleted", "record_id": record_id}
