#!/usr/bin/env python3
"""Bulk import a folder of delivery spreadsheets (and photos) into the ledger."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
import sys
from typing import Iterable, Optional

# Ensure `delivery_ledger` package is importable when script is run directly.
CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = CURRENT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from delivery_ledger.core.config import get_settings
from delivery_ledger.core.errors import FormValidationError, IngestionError
from delivery_ledger.core.logging import configure_logging
from delivery_ledger.services.extraction import EXT_TO_MIME
from delivery_ledger.services.ingestion import ingestion_service
from delivery_ledger.services.record_store import record_store
from delivery_ledger.services.spreadsheet import SPREADSHEET_EXTENSIONS


def supported_extensions(include_photos: bool) -> set[str]:
    extensions = set(SPREADSHEET_EXTENSIONS)
    if include_photos:
        extensions.update(EXT_TO_MIME)
    return extensions


async def ingest_file(path: Path, root: Path, processed_date: Optional[str]) -> bool:
    # Relative path, so same-named sheets in different subfolders stay distinct.
    filename = path.relative_to(root).as_posix()
    try:
        result = await ingestion_service.import_file(
            path.read_bytes(),
            filename=filename,
            processed_date=processed_date,
        )
    except (IngestionError, FormValidationError) as exc:
        print(f"[ERROR] {filename}: {exc.message}")
        return False

    print(
        f"[OK] {filename} source={result.source.value} date={result.processed_date} "
        f"added={result.added} duplicates={result.skipped_duplicates}"
    )
    return True


def iter_files(root: Path, limit: int, extensions: set[str]) -> Iterable[Path]:
    count = 0
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        if path.suffix.lower() not in extensions:
            continue
        yield path
        count += 1
        if limit > 0 and count >= limit:
            break


async def run(root: Path, limit: int, processed_date: Optional[str], include_photos: bool) -> None:
    total = 0
    succeeded = 0

    for file_path in iter_files(root, limit, supported_extensions(include_photos)):
        total += 1
        ok = await ingest_file(file_path, root, processed_date)
        if ok:
            succeeded += 1

    print(
        f"\nImport complete: {succeeded}/{total} successful | "
        f"ledger_records={len(record_store.records)} persistent={record_store.persistent}"
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Bulk import delivery spreadsheets")
    parser.add_argument(
        "folder",
        type=Path,
        help="Folder containing .xlsx/.csv delivery sheets",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Optional max number of files to import (0 = all)",
    )
    parser.add_argument(
        "--date",
        type=str,
        default=None,
        help="Processing date (YYYY-MM-DD) stamped on imported rows; defaults to today",
    )
    parser.add_argument(
        "--include-photos",
        action="store_true",
        help="Also send photos through AI extraction (requires OPENAI_API_KEY)",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, settings.normalized_log_format())

    root = args.folder.expanduser().resolve()
    if not root.exists() or not root.is_dir():
        raise SystemExit(f"Folder not found: {root}")

    asyncio.run(
        run(
            root=root,
            limit=max(0, args.limit),
            processed_date=args.date,
            include_photos=args.include_photos,
        )
    )


if __name__ == "__main__":
    main()
