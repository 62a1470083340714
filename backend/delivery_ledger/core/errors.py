"""Domain exceptions raised by ledger services and translated by the routers."""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for delivery ledger errors."""


class IngestionError(LedgerError):
    """An import could not be completed; nothing from it was committed."""

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.source = source


class UnsupportedFormatError(IngestionError):
    """Uploaded file is neither a spreadsheet nor an image."""


class FormValidationError(LedgerError):
    """A manual, bulk, calendar or occurrence form is missing required data."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class RecordNotFoundError(LedgerError, KeyError):
    """A referenced delivery record id does not exist in the store."""

    def __init__(self, record_id: str) -> None:
        super().__init__(record_id)
        self.record_id = record_id

    def __str__(self) -> str:
        return f"Delivery record not found: {self.record_id}"
