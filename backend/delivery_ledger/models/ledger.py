"""Domain models for the delivery ledger: records, occurrences, and dashboard views."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


FormNumber = Union[int, float, str, None]


class DriverCategory(str, Enum):
    """Roster partition a driver belongs to."""

    IN_HOUSE = "in_house"
    CONTRACTED = "contracted"


class OccurrenceKind(str, Enum):
    """Adjustment events that offset a driver's gross deliveries."""

    RETURN = "return"
    CHARGEBACK = "chargeback"


class RecordSource(str, Enum):
    """Ingestion path a delivery record was created through."""

    MANUAL = "manual"
    BULK = "bulk"
    SPREADSHEET = "spreadsheet"
    IMAGE = "image"
    CALENDAR = "calendar"


class DeliveryRecord(BaseModel):
    """Persisted delivery record: one driver, one day, one load."""

    id: str
    processed_date: str
    plate: str = "---"
    driver: str
    helpers: str = ""
    route: str = "GENERAL"
    load: str = "---"
    delivery_count: int = Field(default=0, ge=0)
    value: float = 0.0
    month: str = ""


class Occurrence(BaseModel):
    """Persisted return/charge-back event."""

    id: str
    driver: str
    date: str
    kind: OccurrenceKind
    reason: str = ""
    count: int = Field(default=0, ge=0)
    value: float = 0.0


# --- Requests -----------------------------------------------------------------


class ManualEntryRequest(BaseModel):
    """Single extra load typed in by an operator."""

    driver: str = ""
    plate: str = ""
    helpers: str = ""
    route: str = ""
    load: str = ""
    delivery_count: FormNumber = None
    value: FormNumber = None
    processed_date: Optional[str] = None


class BulkEntryRow(BaseModel):
    """Per-driver cell pair of the same-day bulk grid."""

    delivery_count: FormNumber = None
    value: FormNumber = None


class BulkEntryRequest(BaseModel):
    """Same-day grid: one optional count/value pair per driver."""

    date: str
    entries: Dict[str, BulkEntryRow] = Field(default_factory=dict)


class CalendarCellEdit(BaseModel):
    """Edit of one day cell in the per-load calendar of a driver."""

    template_id: str
    date: str
    count: FormNumber = None


class OccurrenceCreateRequest(BaseModel):
    """Occurrence form payload."""

    driver: str = ""
    date: str = ""
    kind: Optional[OccurrenceKind] = None
    reason: str = ""
    count: FormNumber = None
    value: FormNumber = None


# --- Views --------------------------------------------------------------------


class MonthOption(BaseModel):
    value: str
    label: str


class MonthCounters(BaseModel):
    """Header counters for the active month."""

    records: int = 0
    occurrences: int = 0


class FleetTotals(BaseModel):
    """Fleet-wide gross, occurrence and net figures for one month."""

    gross_deliveries: int = 0
    occurrence_count: int = 0
    net_deliveries: int = 0
    gross_value: float = 0.0
    occurrence_value: float = 0.0
    net_value: float = 0.0


class MetricDelta(BaseModel):
    """Percent change of a fleet metric against the previous available month."""

    metric: str
    current: float
    previous: float
    percent: float
    changed: bool


class PeriodComparison(BaseModel):
    previous_month: Optional[str] = None
    deltas: List[MetricDelta] = Field(default_factory=list)


class TrendPoint(BaseModel):
    month: str
    label: str
    net_deliveries: int
    occurrence_count: int


class DriverSummary(BaseModel):
    """Per-driver month totals; every roster driver gets one, even if idle."""

    name: str
    category: DriverCategory
    total_deliveries: int = 0
    total_occurrences: int = 0
    total_value: float = 0.0
    total_occurrence_value: float = 0.0
    net_deliveries: int = 0
    net_value: float = 0.0
    last_helper: str = ""
    last_route: str = ""


class UnattributedDriver(BaseModel):
    """Driver name found in the month's records but absent from the roster."""

    name: str
    records: int
    deliveries: int
    value: float


class DashboardResponse(BaseModel):
    month: str
    label: str
    available_months: List[MonthOption]
    counters: MonthCounters
    totals: FleetTotals
    comparison: PeriodComparison
    trend: List[TrendPoint]
    in_house: List[DriverSummary]
    contracted: List[DriverSummary]
    unattributed: List[UnattributedDriver] = Field(default_factory=list)


class DriverDetailResponse(BaseModel):
    month: str
    driver: DriverSummary
    loads: List[DeliveryRecord]
    occurrences: List[Occurrence]


class CalendarDay(BaseModel):
    day: int
    date: str
    count: Optional[int] = None
    record_id: Optional[str] = None


class CalendarResponse(BaseModel):
    driver: str
    month: str
    template: DeliveryRecord
    days_in_month: int
    days: List[CalendarDay]


class CalendarEditResult(BaseModel):
    action: str
    record: Optional[DeliveryRecord] = None


class ImportResponse(BaseModel):
    source: RecordSource
    filename: str = ""
    processed_date: str
    received: int
    added: int
    skipped_duplicates: int
    record_ids: List[str] = Field(default_factory=list)


class RecordHistoryResponse(BaseModel):
    items: List[DeliveryRecord]
    page: int
    total_pages: int
    total: int
