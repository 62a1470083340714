"""Normalization of adapter output and form input into canonical ledger records."""
from __future__ import annotations

import hashlib
import math
import re
import time
from datetime import date
from itertools import count as _counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

from delivery_ledger.core.errors import FormValidationError
from delivery_ledger.core.roster import DriverRoster
from delivery_ledger.models.ledger import (
    BulkEntryRequest,
    DeliveryRecord,
    ManualEntryRequest,
    Occurrence,
    OccurrenceCreateRequest,
    RecordSource,
)


UNKNOWN_DRIVER = "UNKNOWN"
DEFAULT_ROUTE = "GENERAL"
PLACEHOLDER = "---"
QUICK_ENTRY_ROUTE = "QUICK ENTRY"

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_CURRENCY_NOISE = re.compile(r"[R$\s.]")

# Adapter keys, canonical first. The Portuguese names are the spreadsheet and
# AI-extractor vocabulary.
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "driver": ("driver", "motorista"),
    "plate": ("plate", "placa"),
    "helpers": ("helpers", "helper", "ajudantes", "ajudante"),
    "route": ("route", "rota"),
    "load": ("load", "carga"),
    "delivery_count": ("delivery_count", "deliveryCount", "deliveries", "entregas"),
    "value": ("value", "valor"),
}

_sequence = _counter(1)


def normalize_text(value: Any, default: str = "") -> str:
    """Trim and upper-case a free-text field, substituting ``default`` when blank."""
    if value is None:
        return default
    text = str(value).strip().upper()
    return text or default


def parse_count(value: Any) -> int:
    """Delivery/occurrence count; unparseable, negative or non-finite input is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number)


def parse_money(value: Any) -> float:
    """Monetary amount rounded to cents; a comma is read as the decimal separator."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if not math.isfinite(number):
        return 0.0
    return round(number, 2)


def parse_currency_text(value: Any) -> float:
    """Spreadsheet money cell such as ``R$ 1.234,56``.

    Numeric cells are taken as-is. Text cells lose the currency symbol,
    whitespace and ``.`` thousands separators before the comma becomes the
    decimal point.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return parse_money(value)
    if value is None:
        return 0.0
    return parse_money(_CURRENCY_NOISE.sub("", str(value)))


def is_iso_date(value: Optional[str]) -> bool:
    if not value or not DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_month(value: Optional[str]) -> bool:
    return bool(value) and bool(MONTH_PATTERN.match(value))


def month_of(day: str) -> str:
    return day[:7]


def today_iso() -> str:
    return date.today().isoformat()


def make_record_id(prefix: str, driver: str, sequence: Optional[int] = None) -> str:
    """Identifier from source prefix, driver, wall-clock nanoseconds and a sequence.

    Unique enough for a single-user ledger; not a cryptographic guarantee.
    """
    raw = f"{prefix}-{driver}-{time.time_ns()}-{sequence}-{next(_sequence)}"
    return f"{prefix}-{hashlib.md5(raw.encode('utf-8')).hexdigest()[:16]}"


def make_stable_id(prefix: str, *parts: Any) -> str:
    """Deterministic identifier, so re-importing the same source dedups by id."""
    raw = "|".join(str(part) for part in parts)
    return f"{prefix}-{hashlib.md5(raw.encode('utf-8')).hexdigest()[:16]}"


def _pick(candidate: Mapping[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        if key in candidate and candidate[key] not in (None, ""):
            return candidate[key]
    return None


def normalize_candidate(
    candidate: Mapping[str, Any],
    processed_date: str,
    record_id: str,
) -> DeliveryRecord:
    """Turn one adapter row into a ``DeliveryRecord`` applying the default rules."""
    return DeliveryRecord(
        id=record_id,
        processed_date=processed_date,
        plate=normalize_text(_pick(candidate, "plate"), PLACEHOLDER),
        driver=normalize_text(_pick(candidate, "driver"), UNKNOWN_DRIVER),
        helpers=normalize_text(_pick(candidate, "helpers")),
        route=normalize_text(_pick(candidate, "route"), DEFAULT_ROUTE),
        load=normalize_text(_pick(candidate, "load"), PLACEHOLDER),
        delivery_count=parse_count(_pick(candidate, "delivery_count")),
        value=parse_money(_pick(candidate, "value")),
        month=month_of(processed_date),
    )


def normalize_batch(
    candidates: Sequence[Mapping[str, Any]],
    processed_date: str,
    source: RecordSource,
) -> List[DeliveryRecord]:
    """Normalize adapter rows that carry no stable identity of their own."""
    records = []
    for index, candidate in enumerate(candidates):
        driver = normalize_text(_pick(candidate, "driver"), UNKNOWN_DRIVER)
        record_id = make_record_id(source.value, driver, index)
        records.append(normalize_candidate(candidate, processed_date, record_id))
    return records


def _require(value: str, field: str, label: str) -> str:
    if not value:
        raise FormValidationError(f"{label} is required", field=field)
    return value


def _require_date(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not is_iso_date(text):
        raise FormValidationError("Date must be a valid YYYY-MM-DD day", field=field)
    return text


def _require_roster_driver(value: Any, roster: DriverRoster) -> str:
    driver = _require(normalize_text(value), "driver", "Driver")
    if driver not in roster:
        raise FormValidationError(f"Driver '{driver}' is not on the roster", field="driver")
    return driver


def _require_number(value: Any, field: str, label: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise FormValidationError(f"{label} is required", field=field)


def _non_negative_money(value: Any, field: str, label: str) -> float:
    amount = parse_money(value)
    if amount < 0:
        raise FormValidationError(f"{label} cannot be negative", field=field)
    return amount


def build_manual_record(
    request: ManualEntryRequest,
    roster: DriverRoster,
    today: Optional[str] = None,
) -> DeliveryRecord:
    driver = _require_roster_driver(request.driver, roster)
    plate = _require(normalize_text(request.plate), "plate", "Plate")
    route = _require(normalize_text(request.route), "route", "Route")
    load = _require(normalize_text(request.load), "load", "Load")
    _require_number(request.delivery_count, "delivery_count", "Delivery count")

    processed_date = request.processed_date or today or today_iso()
    processed_date = _require_date(processed_date, "processed_date")

    return DeliveryRecord(
        id=make_record_id(RecordSource.MANUAL.value, f"{driver}-{plate}"),
        processed_date=processed_date,
        plate=plate,
        driver=driver,
        helpers=normalize_text(request.helpers),
        route=route,
        load=load,
        delivery_count=parse_count(request.delivery_count),
        value=_non_negative_money(request.value, "value", "Value"),
        month=month_of(processed_date),
    )


def build_bulk_records(request: BulkEntryRequest, roster: DriverRoster) -> List[DeliveryRecord]:
    """Same-day grid rows with a positive count become quick-entry records."""
    processed_date = _require_date(request.date, "date")
    records: List[DeliveryRecord] = []
    for index, (name, row) in enumerate(request.entries.items()):
        deliveries = parse_count(row.delivery_count)
        if deliveries <= 0:
            continue
        driver = normalize_text(name)
        if driver not in roster:
            raise FormValidationError(f"Driver '{driver}' is not on the roster", field="entries")
        records.append(
            DeliveryRecord(
                id=make_record_id(RecordSource.BULK.value, f"{driver}-{processed_date}", index),
                processed_date=processed_date,
                plate=PLACEHOLDER,
                driver=driver,
                helpers="",
                route=QUICK_ENTRY_ROUTE,
                load=PLACEHOLDER,
                delivery_count=deliveries,
                value=parse_money(row.value),
                month=month_of(processed_date),
            )
        )
    if not records:
        raise FormValidationError("No valid entries to save", field="entries")
    return records


def build_calendar_candidate(template: DeliveryRecord, day: str, count: Any) -> DeliveryRecord:
    """Copy of the selected load placed on ``day`` with the typed count."""
    processed_date = _require_date(day, "date")
    return template.model_copy(
        update={
            "id": make_record_id(
                RecordSource.CALENDAR.value, f"{template.driver}-{processed_date}-{template.load}"
            ),
            "processed_date": processed_date,
            "month": month_of(processed_date),
            "delivery_count": parse_count(count),
        }
    )


def build_occurrence(request: OccurrenceCreateRequest, roster: DriverRoster) -> Occurrence:
    driver = _require_roster_driver(request.driver, roster)
    occurred_on = _require_date(request.date, "date")
    if request.kind is None:
        raise FormValidationError("Occurrence kind is required", field="kind")
    _require_number(request.count, "count", "Occurrence count")
    value = _non_negative_money(request.value, "value", "Occurrence value")

    return Occurrence(
        id=make_record_id("occ", driver),
        driver=driver,
        date=occurred_on,
        kind=request.kind,
        reason=(request.reason or "").strip(),
        count=parse_count(request.count),
        value=value,
    )
