"""Unit tests for the spreadsheet adapter."""
from __future__ import annotations

import io
import os
import sys
from pathlib import Path

import pytest
from openpyxl import Workbook


TMP = Path(__file__).resolve().parent / ".tmp_ledger"
TMP.mkdir(parents=True, exist_ok=True)
os.environ["DATA_DIR"] = str(TMP / "data")
os.environ["ROSTER_PATH"] = ""

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from delivery_ledger.core.errors import IngestionError  # noqa: E402
from delivery_ledger.services.spreadsheet import is_spreadsheet, parse_spreadsheet  # noqa: E402


def _workbook_bytes(rows) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_xlsx_rows_become_candidates():
    content = _workbook_bytes(
        [
            ["PLACA", " motorista ", "AJUDANTE", "ROTA", "ENTREGAS", "CARGA", "VALOR"],
            ["ABC1D23", "EDGAR", "PAULO", "OLINDA", 14, "881", "R$ 1.234,56"],
            ["KLM4E21", "TIAGO", None, "CABO", "9", 882, 310.5],
        ]
    )

    candidates = parse_spreadsheet(content, "maio.xlsx")

    assert [c["driver"] for c in candidates] == ["EDGAR", "TIAGO"]
    assert candidates[0]["delivery_count"] == 14
    assert candidates[0]["value"] == 1234.56
    assert candidates[1]["delivery_count"] == 9
    assert candidates[1]["value"] == 310.5
    assert [c["row"] for c in candidates] == [0, 1]


def test_rows_without_driver_are_skipped():
    content = _workbook_bytes(
        [
            ["MOTORISTA", "ENTREGAS"],
            [None, 10],
            ["   ", 4],
            ["EDGAR", 3],
        ]
    )

    candidates = parse_spreadsheet(content, "maio.xlsx")

    assert len(candidates) == 1
    assert candidates[0]["row"] == 0


def test_missing_required_column_aborts_import():
    content = _workbook_bytes([["PLACA", "MOTORISTA", "VALOR"], ["ABC1D23", "EDGAR", 10]])

    with pytest.raises(IngestionError, match="ENTREGAS"):
        parse_spreadsheet(content, "maio.xlsx")


def test_header_only_sheet_is_empty():
    content = _workbook_bytes([["MOTORISTA", "ENTREGAS"]])

    with pytest.raises(IngestionError, match="Spreadsheet is empty"):
        parse_spreadsheet(content, "maio.xlsx")


def test_semicolon_csv_is_accepted():
    content = "MOTORISTA;ENTREGAS;VALOR\nEDGAR;12;R$ 99,90\n".encode("utf-8")

    candidates = parse_spreadsheet(content, "maio.csv")

    assert candidates[0]["driver"] == "EDGAR"
    assert candidates[0]["delivery_count"] == 12
    assert candidates[0]["value"] == 99.9


def test_utf16_csv_export_is_decoded():
    content = "MOTORISTA;ENTREGAS;VALOR\nJOÃO MARCOS;12;R$ 1.234,56\n".encode("utf-16")

    candidates = parse_spreadsheet(content, "entregas.csv")

    assert candidates[0]["driver"] == "JOÃO MARCOS"
    assert candidates[0]["delivery_count"] == 12
    assert candidates[0]["value"] == 1234.56


def test_utf8_csv_with_bom_keeps_first_header():
    content = "\ufeffMOTORISTA,ENTREGAS\nJOÃO MARCOS,7\n".encode("utf-8")

    candidates = parse_spreadsheet(content, "entregas.csv")

    assert candidates == [
        {
            "row": 0,
            "driver": "JOÃO MARCOS",
            "plate": None,
            "helpers": None,
            "route": None,
            "load": None,
            "delivery_count": 7,
            "value": 0.0,
        }
    ]


def test_broken_workbook_raises_ingestion_error():
    with pytest.raises(IngestionError):
        parse_spreadsheet(b"definitely not a zip archive", "maio.xlsx")


def test_spreadsheet_extensions():
    assert is_spreadsheet("Entregas.XLSX")
    assert is_spreadsheet("entregas.csv")
    assert not is_spreadsheet("entregas.xls")
    assert not is_spreadsheet("foto.jpg")
