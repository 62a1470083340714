#!/usr/bin/env python3
"""
CBD Entregas sample workbook generator

Writes a daily delivery sheet in the layout the importer expects:
PLACA | MOTORISTA | AJUDANTE | ROTA | ENTREGAS | CARGA | VALOR

Driver names come from the built-in roster, plus one misspelled name so the
dashboard's unattributed list has something to show.
"""

import argparse
import random
import sys
from pathlib import Path

from openpyxl import Workbook

# Add backend directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "backend"))

from delivery_ledger.core.roster import CONTRACTED_DRIVERS, IN_HOUSE_DRIVERS  # noqa: E402

HEADERS = ["PLACA", "MOTORISTA", "AJUDANTE", "ROTA", "ENTREGAS", "CARGA", "VALOR"]
ROUTES = ["RECIFE SUL", "RECIFE NORTE", "OLINDA", "JABOATAO", "PAULISTA", "CABO"]
HELPERS = ["MARCOS", "PAULO", "RENATO", "SERGIO", "ANDRE", ""]


def random_plate(rng: random.Random) -> str:
    letters = "".join(rng.choice("ABCDEFGHIJKLMNOPQRSTUVWXYZ") for _ in range(3))
    return f"{letters}{rng.randint(0, 9)}{rng.choice('ABCDEFGHIJ')}{rng.randint(10, 99)}"


def build_rows(rng: random.Random, drivers: int):
    names = list(IN_HOUSE_DRIVERS) + list(CONTRACTED_DRIVERS)
    rng.shuffle(names)
    rows = []
    for name in names[:drivers]:
        deliveries = rng.randint(8, 45)
        value = deliveries * rng.uniform(18.0, 32.0)
        rows.append([
            random_plate(rng),
            name,
            rng.choice(HELPERS),
            rng.choice(ROUTES),
            deliveries,
            str(rng.randint(100000, 999999)),
            f"R$ {value:,.2f}".replace(",", "X").replace(".", ",").replace("X", "."),
        ])
    # Off-roster spelling: counted in fleet totals, not in any driver card.
    rows.append([random_plate(rng), "JOAO MARCO", "", "OLINDA", 12, "424242", "R$ 300,00"])
    return rows


def main():
    """Generate the sample workbook."""
    parser = argparse.ArgumentParser(description="Generate a sample delivery workbook")
    parser.add_argument("--output", type=Path, default=Path(__file__).parent / "entregas_exemplo.xlsx")
    parser.add_argument("--drivers", type=int, default=12)
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    rng = random.Random(args.seed)
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Entregas"
    sheet.append(HEADERS)
    for row in build_rows(rng, max(1, args.drivers)):
        sheet.append(row)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(args.output)
    print(f"Sample workbook written to {args.output}")


if __name__ == "__main__":
    main()
