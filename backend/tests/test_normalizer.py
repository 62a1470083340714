"""Unit tests for record normalization and form validation."""
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

from delivery_ledger.core.errors import FormValidationError  # noqa: E402
from delivery_ledger.core.roster import DriverRoster  # noqa: E402
from delivery_ledger.models.ledger import (  # noqa: E402
    BulkEntryRequest,
    DeliveryRecord,
    ManualEntryRequest,
    OccurrenceCreateRequest,
    OccurrenceKind,
    RecordSource,
)
from delivery_ledger.services import normalizer  # noqa: E402


ROSTER = DriverRoster(in_house=["VALDIR DE BARROS"], contracted=["EDGAR", "TIAGO"])


def test_candidate_defaults_and_text_normalization():
    record = normalizer.normalize_candidate(
        {"motorista": "  edgar ", "ajudante": "paulo", "entregas": "14", "valor": "250,75"},
        "2024-05-10",
        "rec-1",
    )

    assert record.driver == "EDGAR"
    assert record.helpers == "PAULO"
    assert record.plate == "---"
    assert record.route == "GENERAL"
    assert record.load == "---"
    assert record.delivery_count == 14
    assert record.value == 250.75
    assert record.month == "2024-05"


def test_candidate_without_driver_is_unknown():
    record = normalizer.normalize_candidate({"deliveries": 3}, "2024-05-10", "rec-2")

    assert record.driver == normalizer.UNKNOWN_DRIVER
    assert record.delivery_count == 3


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("12", 12), (7.9, 7), ("abc", 0), (-3, 0), ("", 0), (None, 0), (float("nan"), 0)],
)
def test_parse_count(raw, expected):
    assert normalizer.parse_count(raw) == expected


def test_money_parsing_reads_comma_as_decimal_point():
    assert normalizer.parse_money("12,50") == 12.5
    assert normalizer.parse_money("not money") == 0.0
    assert normalizer.parse_money(10.456) == 10.46
    assert normalizer.parse_currency_text("R$ 1.234,56") == 1234.56
    assert normalizer.parse_currency_text(1234.5) == 1234.5
    assert normalizer.parse_currency_text(None) == 0.0


def test_batch_ids_are_unique_within_one_call():
    records = normalizer.normalize_batch(
        [{"driver": "EDGAR", "deliveries": 1}, {"driver": "EDGAR", "deliveries": 1}],
        "2024-05-10",
        RecordSource.IMAGE,
    )

    assert records[0].id != records[1].id
    assert all(record.id.startswith("image-") for record in records)


def test_stable_ids_repeat_for_the_same_parts():
    first = normalizer.make_stable_id("sheet", "maio.xlsx", 0, "EDGAR")
    second = normalizer.make_stable_id("sheet", "maio.xlsx", 0, "EDGAR")

    assert first == second
    assert first != normalizer.make_stable_id("sheet", "maio.xlsx", 1, "EDGAR")


def test_manual_record_requires_plate():
    request = ManualEntryRequest(driver="edgar", route="OLINDA", load="991", delivery_count=4)

    with pytest.raises(FormValidationError) as excinfo:
        normalizer.build_manual_record(request, ROSTER, today="2024-05-10")

    assert excinfo.value.field == "plate"


def test_manual_record_rejects_driver_outside_roster():
    request = ManualEntryRequest(
        driver="JOAO MARCO", plate="ABC1D23", route="OLINDA", load="991", delivery_count=4
    )

    with pytest.raises(FormValidationError) as excinfo:
        normalizer.build_manual_record(request, ROSTER, today="2024-05-10")

    assert excinfo.value.field == "driver"


def test_manual_record_is_normalized():
    request = ManualEntryRequest(
        driver="edgar",
        plate="abc1d23",
        route="olinda",
        load="991",
        delivery_count="18",
        value="310,40",
        processed_date="2024-05-11",
    )

    record = normalizer.build_manual_record(request, ROSTER)

    assert record.driver == "EDGAR"
    assert record.plate == "ABC1D23"
    assert record.delivery_count == 18
    assert record.value == 310.4
    assert record.month == "2024-05"
    assert record.id.startswith("manual-")


def test_bulk_entry_keeps_only_positive_counts():
    request = BulkEntryRequest(
        date="2024-05-10",
        entries={
            "EDGAR": {"delivery_count": "12", "value": "100"},
            "TIAGO": {"delivery_count": "0", "value": "50"},
            "VALDIR DE BARROS": {"delivery_count": None},
        },
    )

    records = normalizer.build_bulk_records(request, ROSTER)

    assert [record.driver for record in records] == ["EDGAR"]
    assert records[0].route == normalizer.QUICK_ENTRY_ROUTE
    assert records[0].plate == normalizer.PLACEHOLDER
    assert records[0].load == normalizer.PLACEHOLDER


def test_bulk_entry_without_positive_rows_is_rejected():
    request = BulkEntryRequest(date="2024-05-10", entries={"EDGAR": {"delivery_count": 0}})

    with pytest.raises(FormValidationError, match="No valid entries to save"):
        normalizer.build_bulk_records(request, ROSTER)


def test_calendar_candidate_moves_template_to_new_day():
    template = DeliveryRecord(
        id="tpl", processed_date="2024-05-02", driver="EDGAR", load="881", delivery_count=4
    )

    candidate = normalizer.build_calendar_candidate(template, "2024-05-17", "")

    assert candidate.id != "tpl"
    assert candidate.processed_date == "2024-05-17"
    assert candidate.month == "2024-05"
    assert candidate.load == "881"
    assert candidate.delivery_count == 0


def test_occurrence_requires_kind_and_count():
    missing_kind = OccurrenceCreateRequest(driver="EDGAR", date="2024-05-10", count=2)
    missing_count = OccurrenceCreateRequest(driver="EDGAR", date="2024-05-10", kind="return")

    with pytest.raises(FormValidationError) as kind_error:
        normalizer.build_occurrence(missing_kind, ROSTER)
    with pytest.raises(FormValidationError) as count_error:
        normalizer.build_occurrence(missing_count, ROSTER)

    assert kind_error.value.field == "kind"
    assert count_error.value.field == "count"


def test_occurrence_is_built_from_form_values():
    request = OccurrenceCreateRequest(
        driver="tiago", date="2024-05-10", kind="chargeback", reason=" avaria ", count="3", value="45,90"
    )

    occurrence = normalizer.build_occurrence(request, ROSTER)

    assert occurrence.driver == "TIAGO"
    assert occurrence.kind == OccurrenceKind.CHARGEBACK
    assert occurrence.reason == "avaria"
    assert occurrence.count == 3
    assert occurrence.value == 45.9


def test_date_and_month_validation():
    assert normalizer.is_iso_date("2024-02-29") is True
    assert normalizer.is_iso_date("2023-02-29") is False
    assert normalizer.is_iso_date("10/05/2024") is False
    assert normalizer.is_month("2024-12") is True
    assert normalizer.is_month("2024-13") is False


def test_negative_money_is_rejected_on_forms():
    occurrence = OccurrenceCreateRequest(driver="EDGAR", date="2024-05-10", kind="return", count=1, value="-12,50")
    manual = ManualEntryRequest(
        driver="EDGAR", plate="ABC1D23", route="OLINDA", load="991", delivery_count=4, value=-1
    )

    with pytest.raises(FormValidationError) as occurrence_error:
        normalizer.build_occurrence(occurrence, ROSTER)
    with pytest.raises(FormValidationError) as manual_error:
        normalizer.build_manual_record(manual, ROSTER, today="2024-05-10")

    assert occurrence_error.value.field == "value"
    assert manual_error.value.field == "value"
