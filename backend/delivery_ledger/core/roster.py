"""Fixed driver roster, partitioned into in-house and contracted drivers."""
from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from delivery_ledger.core.config import get_settings
from delivery_ledger.core.logging import logger
from delivery_ledger.models.ledger import DriverCategory


IN_HOUSE_DRIVERS = (
    "AGILSON PINTO DA SILVA",
    "ALDO CESAR MONTEIRO DA SILVA",
    "CLAUDEMIR ELIAS DA SILVA",
    "CLEBERSON SOARES DE AQUINO",
    "JADSON RODRIGO CAVALCANTI DE LIMA",
    "JOAO MARCELO DA SILVA CARNEIRO",
    "JOSENILDO DE SOUZA PIMENTEL",
    "LUIZ ARNALDO ARAUJO DA SILVA",
    "VALDIR DE BARROS",
)

CONTRACTED_DRIVERS = (
    "AILTON VENANCIO",
    "EDGAR",
    "FABIO VITALINO",
    "FELIZBERTO HUMBERTO",
    "FRANCISCO",
    "GEAN",
    "HERMES DA FONSECA",
    "IVALDO DE FREITAS",
    "IVAN MARINHO",
    "JOÃO MARCOS",
    "JOSE CESAR",
    "JOSE IVAN",
    "JOSENILDO BARRETO",
    "JUCIELIO EDUARDO",
    "LIVIO ARCOVERDE",
    "LUCIANO FERREIRA",
    "MAJOR",
    "ROBENILSON",
    "TIAGO",
    "VICENTE",
)


class DriverRoster:
    """Static set of known drivers with an O(1) category lookup.

    Names are stored exactly as given; callers compare against normalized
    (trimmed, upper-cased) record fields, so roster entries are expected to be
    upper-case already.
    """

    def __init__(self, in_house: Iterable[str], contracted: Iterable[str]) -> None:
        self.in_house: List[str] = sorted({name for name in in_house if name})
        self.contracted: List[str] = sorted(
            {name for name in contracted if name and name not in self.in_house}
        )
        self._categories: Dict[str, DriverCategory] = {}
        for name in self.in_house:
            self._categories[name] = DriverCategory.IN_HOUSE
        for name in self.contracted:
            self._categories[name] = DriverCategory.CONTRACTED

    def __contains__(self, name: object) -> bool:
        return name in self._categories

    def __len__(self) -> int:
        return len(self._categories)

    def names(self) -> List[str]:
        """All drivers, in-house first, each category alphabetical."""
        return [*self.in_house, *self.contracted]

    def category_of(self, name: str) -> Optional[DriverCategory]:
        return self._categories.get(name)

    @classmethod
    def from_file(cls, path: Path) -> "DriverRoster":
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if not isinstance(payload, dict):
            raise ValueError("Roster file must contain a JSON object")
        groups = {}
        for key in ("in_house", "contracted"):
            names = payload.get(key, [])
            if not isinstance(names, list):
                raise ValueError(f"Roster '{key}' must be a list of driver names")
            groups[key] = [str(name).strip().upper() for name in names]
        return cls(**groups)


DEFAULT_ROSTER = DriverRoster(IN_HOUSE_DRIVERS, CONTRACTED_DRIVERS)


@lru_cache()
def get_roster() -> DriverRoster:
    """Load the roster once per process; falls back to the built-in roster."""
    settings = get_settings()
    raw_path = (settings.roster_path or "").strip()
    if not raw_path:
        return DEFAULT_ROSTER

    path = Path(raw_path)
    try:
        roster = DriverRoster.from_file(path)
    except (OSError, ValueError) as exc:
        logger.warning(
            "Failed to load roster file; using built-in roster",
            path=str(path),
            error=str(exc),
        )
        return DEFAULT_ROSTER

    logger.info(
        "Driver roster loaded",
        path=str(path),
        in_house=len(roster.in_house),
        contracted=len(roster.contracted),
    )
    return roster
