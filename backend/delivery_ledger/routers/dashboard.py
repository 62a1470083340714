"""API routes for the monthly dashboard and per-driver views."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from delivery_ledger.core.config import get_settings
from delivery_ledger.core.roster import get_roster
from delivery_ledger.models.ledger import (
    CalendarResponse,
    DashboardResponse,
    DriverDetailResponse,
    MonthOption,
)
from delivery_ledger.services import aggregation
from delivery_ledger.services.normalizer import is_month, normalize_text, today_iso
from delivery_ledger.services.record_store import record_store

router = APIRouter(tags=["dashboard"])


def resolve_month(month: Optional[str]) -> str:
    """Active month from the query string, defaulting to the current month."""
    if not month:
        return today_iso()[:7]
    month = month.strip()
    if not is_month(month):
        raise HTTPException(status_code=400, detail="month must be formatted as YYYY-MM")
    return month


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    month: Optional[str] = Query(default=None),
    search: str = Query(default=""),
):
    settings = get_settings()
    return aggregation.build_dashboard(
        record_store.records,
        record_store.occurrences,
        resolve_month(month),
        get_roster(),
        search=search,
        trend_months=settings.trend_months,
    )


@router.get("/dashboard/months")
def get_available_months() -> dict:
    """Month selector options, newest first."""
    months = aggregation.available_months(record_store.records, record_store.occurrences)
    return {
        "current": today_iso()[:7],
        "months": [
            MonthOption(value=month, label=aggregation.format_month_label(month)).model_dump()
            for month in months
        ],
    }


@router.get("/drivers/{driver}", response_model=DriverDetailResponse)
def get_driver_detail(driver: str, month: Optional[str] = Query(default=None)):
    name = normalize_text(driver)
    try:
        return aggregation.driver_detail(
            record_store.records,
            record_store.occurrences,
            name,
            resolve_month(month),
            get_roster(),
        )
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Driver '{name}' is not on the roster")


@router.get("/drivers/{driver}/calendar", response_model=CalendarResponse)
def get_driver_calendar(
    driver: str,
    template_id: str = Query(...),
    month: Optional[str] = Query(default=None),
):
    name = normalize_text(driver)
    template = record_store.get_record(template_id)
    if template is None or template.driver != name:
        raise HTTPException(status_code=404, detail="Load not found for this driver")
    return aggregation.calendar_grid(record_store.records, template, resolve_month(month))
