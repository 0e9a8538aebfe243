from __future__ import annotations

import io
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.row_data import RawRow

"""Spreadsheet decoding.

The workbook is read with pandas (openpyxl engine) without a header so that the
header row can be chosen here:

- row 0 is the header, unless it has fewer than ``min_filled`` non-empty cells and
  the sheet has more rows, in which case row 0 is a title ("Monthly Report") and
  row 1 holds the headers;
- repeated header text gets positional suffixes (``Box No``, ``Box No_1``, ...) so
  every column has a distinct key;
- blank header cells become ``Column{n}`` (1-based column position);
- every cell is turned into text, blank cells into "" and fully blank data rows
  are dropped.
"""

__all__ = [
    "SpreadsheetDecodeError",
    "SheetHeaderError",
    "DecodedSheet",
    "read_workbook",
    "detect_header_row",
    "dedupe_headers",
    "cell_to_str",
    "normalize_sheet",
    "decode_spreadsheet",
]


class SpreadsheetDecodeError(Exception):
    """Raised when the bytes are not a readable workbook or it has no sheets."""


class SheetHeaderError(Exception):
    """Raised when the selected sheet has no header row at all."""


@dataclass
class DecodedSheet:
    sheet_name: str
    header_index: int  # 0-based row index the headers were read from
    columns: list[str]  # distinct column keys, sheet order
    rows: list[RawRow]

    @property
    def header_row(self) -> int:
        """1-based header row as shown in Excel."""
        return self.header_index + 1


def read_workbook(source: bytes | Path, sheet_name: str | None = None) -> tuple[str, pd.DataFrame]:
    """Read one sheet (first sheet by default) as a raw DataFrame without header.

    Raises:
        SpreadsheetDecodeError: unreadable input, no sheets, unknown sheet name
    """
    target: Any = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        xls = pd.ExcelFile(target, engine="openpyxl")
    except Exception as e:
        raise SpreadsheetDecodeError(f"unreadable spreadsheet: {e}") from e

    names = [str(n) for n in xls.sheet_names]
    if not names:
        raise SpreadsheetDecodeError("workbook contains no sheets")
    if sheet_name is None:
        chosen = names[0]
    elif sheet_name in names:
        chosen = sheet_name
    else:
        raise SpreadsheetDecodeError(f"sheet '{sheet_name}' not found (available: {names})")

    try:
        # 全セル object のまま読む (数値の丸め・NaN 変換は cell_to_str で扱う)
        df = xls.parse(chosen, header=None, dtype=object, keep_default_na=False)
    except Exception as e:
        raise SpreadsheetDecodeError(f"failed to read sheet '{chosen}': {e}") from e
    return chosen, df


def cell_to_str(value: Any) -> str:
    """Text of a cell as a user would read it; blank -> ""."""
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        # Excel stores serials / IMEIs as floats when typed as numbers
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def detect_header_row(df: pd.DataFrame, min_filled: int = 3) -> int:
    """Return the 0-based index of the header row (0 or 1)."""
    if df.shape[0] <= 1:
        return 0
    filled = sum(1 for v in df.iloc[0].tolist() if cell_to_str(v) != "")
    return 1 if filled < min_filled else 0


def dedupe_headers(headers: list[str]) -> list[str]:
    """Give repeated header text positional suffixes: X, X_1, X_2, ..."""
    used: set[str] = set()
    counters: dict[str, int] = {}
    out: list[str] = []
    for header in headers:
        name = header
        if name in used:
            n = counters.get(header, 0)
            while True:
                n += 1
                name = f"{header}_{n}"
                if name not in used:
                    break
            counters[header] = n
        used.add(name)
        out.append(name)
    return out


def normalize_sheet(
    df: pd.DataFrame,
    sheet_name: str,
    *,
    min_filled: int = 3,
    null_sentinels: frozenset[str] | set[str] | None = None,
) -> DecodedSheet:
    """Pick the header row and turn the remaining rows into RawRows."""
    if df.shape[0] == 0 or df.shape[1] == 0:
        raise SheetHeaderError(f"sheet '{sheet_name}' is empty")

    header_index = detect_header_row(df, min_filled)
    raw_headers = []
    for pos, v in enumerate(df.iloc[header_index].tolist()):
        text = cell_to_str(v)
        raw_headers.append(text if text else f"Column{pos + 1}")
    columns = dedupe_headers(raw_headers)

    rows: list[RawRow] = []
    for offset, raw in enumerate(df.iloc[header_index + 1:].itertuples(index=False, name=None)):
        values: dict[str, str] = {}
        for col, cell in zip(columns, raw, strict=False):
            text = cell_to_str(cell)
            if null_sentinels and text.upper() in null_sentinels:
                text = ""
            values[col] = text
        if not any(values.values()):
            continue
        # header_index は 0 始まり、Excel 行番号は 1 始まり
        rows.append(RawRow(row_number=header_index + offset + 2, values=values))

    return DecodedSheet(sheet_name=sheet_name, header_index=header_index, columns=columns, rows=rows)


def decode_spreadsheet(
    source: bytes | Path,
    *,
    sheet_name: str | None = None,
    min_filled: int = 3,
    null_sentinels: frozenset[str] | set[str] | None = None,
) -> DecodedSheet:
    name, df = read_workbook(source, sheet_name)
    return normalize_sheet(df, name, min_filled=min_filled, null_sentinels=null_sentinels)
