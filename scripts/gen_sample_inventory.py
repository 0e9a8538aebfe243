#!/usr/bin/env python3
"""Sample inventory workbook generator.

Generates a router inventory .xlsx in the layout the field teams send:
- Row 1: title row ("Router Inventory"), only the first cell filled
- Row 2: header row
- Row 3+: one router per row

Useful for trying the importer locally (DISABLE_DB_CONNECT=1) and for the
merge throughput test.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

HEADERS = [
    "Box No Prefix",
    "Kutu No",
    "Serial Number",
    "IMEI",
    "MAC Address",
    "Firmware",
    "SSID",
    "WiFi Password",
    "Device Password",
    "RVM ID",
    "SIM No",
]


def _digits(rng: np.random.Generator, length: int) -> str:
    return "".join(str(d) for d in rng.integers(0, 10, length))


def generate_inventory_frame(rows: int, *, rvm_units: int = 10, seed: int = 42) -> pd.DataFrame:
    """Synthetic inventory rows with unique serial numbers, IMEIs and SIM numbers.

    Routers are spread over ``rvm_units`` machines, so RVM ids repeat.
    """
    rng = np.random.default_rng(seed)
    rvm_ids = [f"KPL{4020000000 + i:010d}" for i in range(max(1, rvm_units))]

    data: dict[str, list[str]] = {h: [] for h in HEADERS}
    for i in range(rows):
        mac = rng.integers(0, 256, 6)
        data["Box No Prefix"].append("RUT901")
        data["Kutu No"].append(f"{i + 1:05d}")
        data["Serial Number"].append(f"{6000000000 + i}")
        data["IMEI"].append(f"86{_digits(rng, 7)}{i:06d}")
        data["MAC Address"].append(":".join(f"{b:02x}" for b in mac))
        data["Firmware"].append("RUT9_R_00.07.06")
        data["SSID"].append(f"RUT901_{i + 1:04d}")
        data["WiFi Password"].append(_digits(rng, 8))
        data["Device Password"].append(f"Adm{_digits(rng, 6)}")
        data["RVM ID"].append(rvm_ids[i % len(rvm_ids)].lower())
        data["SIM No"].append(f"5{i:09d}")
    return pd.DataFrame(data)


def create_inventory_workbook(
    output_path: Path,
    rows: int,
    *,
    rvm_units: int = 10,
    title: str = "Router Inventory",
    seed: int = 42,
) -> None:
    df = generate_inventory_frame(rows, rvm_units=rvm_units, seed=seed)

    sheet_data: list[list[str]] = [[title] + [""] * (len(df.columns) - 1)]
    sheet_data.append(df.columns.tolist())
    sheet_data.extend(df.values.tolist())

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        pd.DataFrame(sheet_data).to_excel(writer, sheet_name="Routers", header=False, index=False)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a sample router inventory workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/routers.xlsx
  %(prog)s data/big.xlsx --rows 5000 --rvm-units 200 --seed 7
        """,
    )
    parser.add_argument("output", type=Path, help="Output Excel file path")
    parser.add_argument("--rows", type=int, default=200, help="Number of routers (default: 200)")
    parser.add_argument("--rvm-units", type=int, default=10, help="Distinct RVM ids (default: 10)")
    parser.add_argument("--title", default="Router Inventory", help="Title row text")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1

    try:
        create_inventory_workbook(
            args.output, args.rows, rvm_units=args.rvm_units, title=args.title, seed=args.seed
        )
    except OSError as e:
        print(f"Error writing {args.output}: {e}", file=sys.stderr)
        return 1
    print(f"Created {args.output}: {args.rows} routers, {args.rvm_units} RVM units")
    return 0


if __name__ == "__main__":
    sys.exit(main())
