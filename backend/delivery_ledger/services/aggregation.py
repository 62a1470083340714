"""Monthly aggregation of the ledger: fleet totals, driver totals, deltas and trends.

Everything here is a pure function of the record collections passed in. Month
membership is a lexical prefix test on the ``YYYY-MM-DD`` strings, and
iteration follows store insertion order, which decides the "last" helper and
route shown for a driver.
"""
from __future__ import annotations

import calendar
import math
from collections import OrderedDict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from delivery_ledger.core.roster import DriverRoster
from delivery_ledger.models.ledger import (
    CalendarDay,
    CalendarResponse,
    DashboardResponse,
    DeliveryRecord,
    DriverCategory,
    DriverDetailResponse,
    DriverSummary,
    FleetTotals,
    MetricDelta,
    MonthCounters,
    MonthOption,
    Occurrence,
    PeriodComparison,
    RecordHistoryResponse,
    TrendPoint,
    UnattributedDriver,
)


MONTH_NAMES_PT = (
    "Janeiro",
    "Fevereiro",
    "Março",
    "Abril",
    "Maio",
    "Junho",
    "Julho",
    "Agosto",
    "Setembro",
    "Outubro",
    "Novembro",
    "Dezembro",
)

DELTA_METRICS = ("net_deliveries", "occurrence_count", "net_value", "occurrence_value")


def _money(value: float) -> float:
    return round(value, 2)


def format_month_label(month: str) -> str:
    """``2024-05`` -> ``Maio de 2024``; anything unparseable is returned unchanged."""
    try:
        year, number = month.split("-")
        return f"{MONTH_NAMES_PT[int(number) - 1]} de {int(year)}"
    except (ValueError, IndexError):
        return month


def records_in_month(records: Iterable[DeliveryRecord], month: str) -> List[DeliveryRecord]:
    return [record for record in records if record.processed_date.startswith(month)]


def occurrences_in_month(occurrences: Iterable[Occurrence], month: str) -> List[Occurrence]:
    return [occurrence for occurrence in occurrences if occurrence.date.startswith(month)]


def available_months(
    records: Iterable[DeliveryRecord],
    occurrences: Iterable[Occurrence],
    today: Optional[date] = None,
) -> List[str]:
    """Months present in either collection plus the current month, newest first."""
    current = (today or date.today()).isoformat()[:7]
    months = {current}
    months.update(record.processed_date[:7] for record in records if record.processed_date[:7])
    months.update(occurrence.date[:7] for occurrence in occurrences if occurrence.date[:7])
    return sorted(months, reverse=True)


def fleet_totals(
    records: Iterable[DeliveryRecord],
    occurrences: Iterable[Occurrence],
    month: str,
) -> FleetTotals:
    """Totals over every record of the month, roster match or not.

    Net figures are not clamped: a negative net signals more occurrences than
    deliveries were entered.
    """
    month_records = records_in_month(records, month)
    month_occurrences = occurrences_in_month(occurrences, month)

    gross_deliveries = sum(record.delivery_count for record in month_records)
    occurrence_count = sum(occurrence.count for occurrence in month_occurrences)
    gross_value = sum(record.value for record in month_records)
    occurrence_value = sum(occurrence.value for occurrence in month_occurrences)

    return FleetTotals(
        gross_deliveries=gross_deliveries,
        occurrence_count=occurrence_count,
        net_deliveries=gross_deliveries - occurrence_count,
        gross_value=_money(gross_value),
        occurrence_value=_money(occurrence_value),
        net_value=_money(gross_value - occurrence_value),
    )


def driver_summaries(
    records: Iterable[DeliveryRecord],
    occurrences: Iterable[Occurrence],
    month: str,
    roster: DriverRoster,
) -> "OrderedDict[str, DriverSummary]":
    """One summary per roster driver, seeded with zeroes, in roster order."""
    groups: "OrderedDict[str, Dict]" = OrderedDict()
    for name in roster.names():
        groups[name] = {
            "deliveries": 0,
            "value": 0.0,
            "occurrences": 0,
            "occurrence_value": 0.0,
            "last_helper": "",
            "last_route": "",
        }

    for record in records_in_month(records, month):
        group = groups.get(record.driver)
        if group is None:
            continue
        group["deliveries"] += record.delivery_count
        group["value"] += record.value
        if record.helpers:
            group["last_helper"] = record.helpers
        if record.route:
            group["last_route"] = record.route

    for occurrence in occurrences_in_month(occurrences, month):
        group = groups.get(occurrence.driver)
        if group is None:
            continue
        group["occurrences"] += occurrence.count
        group["occurrence_value"] += occurrence.value

    summaries: "OrderedDict[str, DriverSummary]" = OrderedDict()
    for name, group in groups.items():
        summaries[name] = DriverSummary(
            name=name,
            category=roster.category_of(name),
            total_deliveries=group["deliveries"],
            total_occurrences=group["occurrences"],
            total_value=_money(group["value"]),
            total_occurrence_value=_money(group["occurrence_value"]),
            net_deliveries=group["deliveries"] - group["occurrences"],
            net_value=_money(group["value"] - group["occurrence_value"]),
            last_helper=group["last_helper"],
            last_route=group["last_route"],
        )
    return summaries


def unattributed_drivers(
    records: Iterable[DeliveryRecord],
    month: str,
    roster: DriverRoster,
) -> List[UnattributedDriver]:
    """Off-roster driver names of the month; their figures only reach fleet totals."""
    found: "OrderedDict[str, Dict]" = OrderedDict()
    for record in records_in_month(records, month):
        if record.driver in roster:
            continue
        entry = found.setdefault(record.driver, {"records": 0, "deliveries": 0, "value": 0.0})
        entry["records"] += 1
        entry["deliveries"] += record.delivery_count
        entry["value"] += record.value
    return [
        UnattributedDriver(
            name=name,
            records=entry["records"],
            deliveries=entry["deliveries"],
            value=_money(entry["value"]),
        )
        for name, entry in found.items()
    ]


def previous_month(months: Sequence[str], active: str) -> Optional[str]:
    """The available month right before ``active``; months are never synthesized."""
    for month in sorted(set(months), reverse=True):
        if month < active:
            return month
    return None


def percent_delta(current: float, previous: float) -> float:
    """Percent change; a zero baseline yields 0 rather than infinity."""
    if previous == 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def compare_periods(
    records: Sequence[DeliveryRecord],
    occurrences: Sequence[Occurrence],
    active: str,
    months: Sequence[str],
) -> PeriodComparison:
    prior = previous_month(months, active)
    current_totals = fleet_totals(records, occurrences, active)
    previous_totals = fleet_totals(records, occurrences, prior) if prior else FleetTotals()

    deltas = []
    for metric in DELTA_METRICS:
        current = float(getattr(current_totals, metric))
        previous = float(getattr(previous_totals, metric))
        percent = percent_delta(current, previous)
        deltas.append(
            MetricDelta(
                metric=metric,
                current=current,
                previous=previous,
                percent=percent,
                changed=percent != 0,
            )
        )
    return PeriodComparison(previous_month=prior, deltas=deltas)


def trend_series(
    records: Sequence[DeliveryRecord],
    occurrences: Sequence[Occurrence],
    months: Sequence[str],
    limit: int = 6,
) -> List[TrendPoint]:
    """Net deliveries and occurrence counts for the latest ``limit`` months, oldest first."""
    recent = sorted(set(months), reverse=True)[: max(0, limit)]
    points = []
    for month in reversed(recent):
        totals = fleet_totals(records, occurrences, month)
        points.append(
            TrendPoint(
                month=month,
                label=format_month_label(month),
                net_deliveries=totals.net_deliveries,
                occurrence_count=totals.occurrence_count,
            )
        )
    return points


def unique_loads(records: Iterable[DeliveryRecord], driver: str, month: str) -> List[DeliveryRecord]:
    """The driver's month records deduplicated by (route, load, plate), first seen kept."""
    seen = set()
    loads = []
    for record in records_in_month(records, month):
        if record.driver != driver:
            continue
        key = (record.route, record.load, record.plate)
        if key in seen:
            continue
        seen.add(key)
        loads.append(record)
    return loads


def days_in_month(month: str) -> int:
    year, number = (int(part) for part in month.split("-"))
    return calendar.monthrange(year, number)[1]


def calendar_grid(
    records: Iterable[DeliveryRecord],
    template: DeliveryRecord,
    month: str,
) -> CalendarResponse:
    """Day cells for one driver/load; each shows the first matching record's count."""
    by_day: Dict[str, DeliveryRecord] = {}
    for record in records_in_month(records, month):
        if record.driver == template.driver and record.load == template.load:
            by_day.setdefault(record.processed_date, record)

    total_days = days_in_month(month)
    days = []
    for day in range(1, total_days + 1):
        day_str = f"{month}-{day:02d}"
        match = by_day.get(day_str)
        days.append(
            CalendarDay(
                day=day,
                date=day_str,
                count=match.delivery_count if match else None,
                record_id=match.id if match else None,
            )
        )
    return CalendarResponse(
        driver=template.driver,
        month=month,
        template=template,
        days_in_month=total_days,
        days=days,
    )


def month_counters(
    records: Iterable[DeliveryRecord],
    occurrences: Iterable[Occurrence],
    month: str,
) -> MonthCounters:
    return MonthCounters(
        records=len(records_in_month(records, month)),
        occurrences=len(occurrences_in_month(occurrences, month)),
    )


def search_history(
    records: Sequence[DeliveryRecord],
    search: str = "",
    page: int = 1,
    page_size: int = 12,
) -> RecordHistoryResponse:
    """Records matching ``search`` on driver, plate or route, newest day first."""
    needle = (search or "").strip().lower()
    matched = [
        record
        for record in records
        if needle in record.driver.lower()
        or needle in record.plate.lower()
        or needle in record.route.lower()
    ]
    matched.sort(key=lambda record: record.processed_date, reverse=True)

    page_size = max(1, page_size)
    total_pages = math.ceil(len(matched) / page_size)
    start = (max(1, page) - 1) * page_size
    return RecordHistoryResponse(
        items=matched[start : start + page_size],
        page=max(1, page),
        total_pages=total_pages,
        total=len(matched),
    )


def build_dashboard(
    records: Sequence[DeliveryRecord],
    occurrences: Sequence[Occurrence],
    month: str,
    roster: DriverRoster,
    today: Optional[date] = None,
    search: str = "",
    trend_months: int = 6,
) -> DashboardResponse:
    months = available_months(records, occurrences, today=today)
    summaries = driver_summaries(records, occurrences, month, roster)

    needle = (search or "").strip().lower()
    listed = [summary for summary in summaries.values() if needle in summary.name.lower()]

    return DashboardResponse(
        month=month,
        label=format_month_label(month),
        available_months=[MonthOption(value=m, label=format_month_label(m)) for m in months],
        counters=month_counters(records, occurrences, month),
        totals=fleet_totals(records, occurrences, month),
        comparison=compare_periods(records, occurrences, month, months),
        trend=trend_series(records, occurrences, months, limit=trend_months),
        in_house=[s for s in listed if s.category == DriverCategory.IN_HOUSE],
        contracted=[s for s in listed if s.category == DriverCategory.CONTRACTED],
        unattributed=unattributed_drivers(records, month, roster),
    )


def driver_detail(
    records: Sequence[DeliveryRecord],
    occurrences: Sequence[Occurrence],
    driver: str,
    month: str,
    roster: DriverRoster,
) -> DriverDetailResponse:
    """Raises ``KeyError`` for names outside the roster."""
    summaries = driver_summaries(records, occurrences, month, roster)
    summary = summaries[driver]
    return DriverDetailResponse(
        month=month,
        driver=summary,
        loads=unique_loads(records, driver, month),
        occurrences=[o for o in occurrences_in_month(occurrences, month) if o.driver == driver],
    )
