"""Spreadsheet adapter: first sheet of an xlsx workbook (or a CSV) to record candidates."""
from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from zipfile import BadZipFile

import chardet
import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from delivery_ledger.core.errors import IngestionError
from delivery_ledger.core.logging import logger
from delivery_ledger.services.normalizer import parse_count, parse_currency_text


REQUIRED_COLUMNS = {"driver": "MOTORISTA", "delivery_count": "ENTREGAS"}
OPTIONAL_COLUMNS = {
    "plate": "PLACA",
    "helpers": "AJUDANTE",
    "route": "ROTA",
    "load": "CARGA",
    "value": "VALOR",
}

SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm", ".csv"}


def is_spreadsheet(filename: str) -> bool:
    return Path(filename or "").suffix.lower() in SPREADSHEET_EXTENSIONS


def _read_xlsx(content: bytes) -> List[Sequence[Any]]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as exc:
        raise IngestionError(f"Could not open workbook: {exc}", source="spreadsheet") from exc
    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return [tuple(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _decode_csv(content: bytes) -> str:
    """Decode CSV bytes using the encoding chardet detects (UTF-8, UTF-16, cp1252...)."""
    result = chardet.detect(content)
    encoding = (result.get("encoding") or "utf-8").lower()
    if encoding in {"ascii", "utf-8"}:
        encoding = "utf-8-sig"
    try:
        text = content.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise IngestionError(
            f"Could not decode CSV file as {encoding}: {exc}", source="spreadsheet"
        ) from exc
    logger.debug("CSV encoding detected", encoding=encoding, confidence=result.get("confidence"))
    return text


def _read_csv(content: bytes) -> List[Sequence[Any]]:
    text = _decode_csv(content)
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=";,\t")
        delimiter = dialect.delimiter
    except csv.Error:
        delimiter = ","
    return [tuple(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]


def _column_index(headers: List[str], name: str) -> Optional[int]:
    try:
        return headers.index(name)
    except ValueError:
        return None


def _cell(row: Sequence[Any], index: Optional[int]) -> Any:
    if index is None or index >= len(row):
        return None
    return row[index]


def rows_to_candidates(rows: Sequence[Sequence[Any]]) -> List[Dict[str, Any]]:
    """Map a header row plus data rows to candidate dicts.

    Each candidate carries ``row``, its position among the kept data rows,
    which the ingestion layer uses for deterministic ids.
    """
    if len(rows) < 2:
        raise IngestionError("Spreadsheet is empty", source="spreadsheet")

    headers = ["" if header is None else str(header).strip().upper() for header in rows[0]]
    columns = {field: _column_index(headers, name) for field, name in REQUIRED_COLUMNS.items()}
    missing = [REQUIRED_COLUMNS[field] for field, index in columns.items() if index is None]
    if missing:
        raise IngestionError(
            f"Required columns not found in spreadsheet: {', '.join(missing)}",
            source="spreadsheet",
        )
    for field, name in OPTIONAL_COLUMNS.items():
        columns[field] = _column_index(headers, name)

    candidates: List[Dict[str, Any]] = []
    for row in rows[1:]:
        driver = _cell(row, columns["driver"])
        if driver is None or not str(driver).strip():
            continue
        candidates.append(
            {
                "row": len(candidates),
                "driver": str(driver),
                "plate": _cell(row, columns["plate"]),
                "helpers": _cell(row, columns["helpers"]),
                "route": _cell(row, columns["route"]),
                "load": _cell(row, columns["load"]),
                "delivery_count": parse_count(_cell(row, columns["delivery_count"])),
                "value": parse_currency_text(_cell(row, columns["value"])),
            }
        )
    return candidates


def parse_spreadsheet(content: bytes, filename: str) -> List[Dict[str, Any]]:
    """Read the first sheet of ``filename`` and return its record candidates."""
    suffix = Path(filename or "").suffix.lower()
    rows = _read_csv(content) if suffix == ".csv" else _read_xlsx(content)
    candidates = rows_to_candidates(rows)
    logger.info(
        "Spreadsheet parsed",
        filename=filename,
        rows=len(rows) - 1,
        candidates=len(candidates),
    )
    return candidates
