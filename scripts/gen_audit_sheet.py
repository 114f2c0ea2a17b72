#!/usr/bin/env python3
"""Generate a synthetic book-stock sheet for manual and performance checks.

Layout matches what the audit import expects:
- Row 1: header row (SAP Code / Material Description / Book Qty / UOM / Rate)
- Row 2+: one material per row

Optionally also writes a counts YAML (``--counts``) with a physical count for
a fraction of the materials, usable with ``stock-audit audit --counts``.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import yaml

HEADERS = ["SAP Code", "Material Description", "Book Qty", "UOM", "Rate"]
UOMS = ["EA", "KG", "M", "L", "BOX", "SET"]
NOUNS = ["Bolt", "Nut", "Washer", "Bearing", "Gasket", "Valve", "Cable", "Filter", "Seal", "Bracket"]


def generate_stock(rows: int, seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    codes = [f"MAT{100000 + i}" for i in range(rows)]
    descriptions = [
        f"{rng.choice(NOUNS)} {int(rng.integers(4, 64))}mm grade {int(rng.integers(1, 9))}"
        for _ in range(rows)
    ]
    qty = rng.integers(0, 5000, rows)
    rate = np.round(rng.uniform(0.5, 2500.0, rows), 2)
    return pd.DataFrame(
        {
            HEADERS[0]: codes,
            HEADERS[1]: descriptions,
            HEADERS[2]: qty,
            HEADERS[3]: rng.choice(UOMS, rows),
            HEADERS[4]: rate,
        }
    )


def generate_counts(df: pd.DataFrame, fraction: float, seed: int = 42) -> dict[str, int]:
    """Physical counts for a random subset: mostly exact, some short, some over."""
    rng = np.random.default_rng(seed + 1)
    picked = df.sample(frac=fraction, random_state=seed)
    counts: dict[str, int] = {}
    for code, book in zip(picked[HEADERS[0]], picked[HEADERS[2]], strict=True):
        drift = int(rng.choice([0, 0, 0, -1, -5, 2]))
        counts[str(code)] = max(int(book) + drift, 0)
    return counts


def write_sheet(output_path: Path, df: pd.DataFrame, sheet_name: str = "Stock") -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    print(f"Created stock sheet: {output_path}")
    print(f"  Materials: {len(df):,}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic book-stock sheet (and optional counts) for audits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s stock.xlsx --rows 5000
  %(prog)s stock.xlsx --rows 20000 --counts counts.yml --fraction 0.6
        """,
    )
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--rows", type=int, default=1000, help="Number of materials (default: 1000)")
    parser.add_argument("--counts", type=Path, default=None, help="Also write a counts YAML here")
    parser.add_argument("--fraction", type=float, default=0.5, help="Share of materials counted (default: 0.5)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0 < args.fraction <= 1:
        print("Error: --fraction must be in (0, 1]", file=sys.stderr)
        return 1

    df = generate_stock(args.rows, args.seed)
    write_sheet(args.output, df)
    if args.counts is not None:
        counts = generate_counts(df, args.fraction, args.seed)
        args.counts.parent.mkdir(parents=True, exist_ok=True)
        args.counts.write_text(yaml.safe_dump({"counts": counts}, sort_keys=False), encoding="utf-8")
        print(f"Created counts file: {args.counts} ({len(counts):,} counts)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
