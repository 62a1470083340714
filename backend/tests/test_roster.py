"""Unit tests for roster loading."""
from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest


TMP = Path(__file__).resolve().parent / ".tmp_ledger"
TMP.mkdir(parents=True, exist_ok=True)
os.environ["DATA_DIR"] = str(TMP / "data")
os.environ["ROSTER_PATH"] = ""

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from delivery_ledger.core import roster as roster_module  # noqa: E402
from delivery_ledger.core.roster import DEFAULT_ROSTER, DriverRoster  # noqa: E402
from delivery_ledger.models.ledger import DriverCategory  # noqa: E402


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_roster_file_is_normalized_and_categorized(tmp_path):
    path = _write(tmp_path / "roster.json", {"in_house": [" valdir "], "contracted": ["edgar", "tiago"]})

    roster = DriverRoster.from_file(path)

    assert roster.names() == ["VALDIR", "EDGAR", "TIAGO"]
    assert roster.category_of("EDGAR") == DriverCategory.CONTRACTED
    assert "VALDIR" in roster
    assert len(roster) == 3


@pytest.mark.parametrize(
    "payload",
    [
        {"in_house": "VALDIR DE BARROS", "contracted": []},
        {"in_house": [], "contracted": {"EDGAR": True}},
        ["VALDIR DE BARROS"],
    ],
)
def test_roster_file_with_wrong_shapes_is_rejected(tmp_path, payload):
    path = _write(tmp_path / "roster.json", payload)

    with pytest.raises(ValueError):
        DriverRoster.from_file(path)


def test_get_roster_falls_back_to_builtin_roster_on_bad_file(tmp_path, monkeypatch):
    path = _write(tmp_path / "roster.json", {"in_house": "VALDIR DE BARROS"})
    monkeypatch.setattr(roster_module, "get_settings", lambda: SimpleNamespace(roster_path=str(path)))
    roster_module.get_roster.cache_clear()
    try:
        assert roster_module.get_roster() is DEFAULT_ROSTER
    finally:
        roster_module.get_roster.cache_clear()
