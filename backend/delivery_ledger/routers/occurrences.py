"""API routes for returns and charge-backs."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from delivery_ledger.core.errors import FormValidationError
from delivery_ledger.models.ledger import Occurrence, OccurrenceCreateRequest
from delivery_ledger.routers.dashboard import resolve_month
from delivery_ledger.services.aggregation import occurrences_in_month
from delivery_ledger.services.ingestion import ingestion_service
from delivery_ledger.services.normalizer import normalize_text
from delivery_ledger.services.record_store import record_store

router = APIRouter(prefix="/occurrences", tags=["occurrences"])


@router.post("", response_model=Occurrence)
def create_occurrence(request: OccurrenceCreateRequest):
    try:
        return ingestion_service.record_occurrence(request)
    except FormValidationError as exc:
        raise HTTPException(status_code=422, detail={"message": exc.message, "field": exc.field})


@router.get("")
def list_occurrences(
    month: Optional[str] = Query(default=None),
    driver: Optional[str] = Query(default=None),
) -> dict:
    active = resolve_month(month)
    items = occurrences_in_month(record_store.occurrences, active)
    if driver:
        name = normalize_text(driver)
        items = [item for item in items if item.driver == name]
    return {"month": active, "items": [item.model_dump(mode="json") for item in items]}
