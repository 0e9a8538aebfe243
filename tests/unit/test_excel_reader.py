from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from inventory_import.excel.reader import (
    SheetHeaderError,
    SpreadsheetDecodeError,
    cell_to_str,
    decode_spreadsheet,
    dedupe_headers,
    detect_header_row,
    normalize_sheet,
    read_workbook,
)


def test_decode_uses_first_row_as_header(make_workbook, inventory_rows):
    path = make_workbook(inventory_rows)
    sheet = decode_spreadsheet(path)
    assert sheet.sheet_name == "Sheet1"
    assert sheet.header_index == 0
    assert sheet.header_row == 1
    assert sheet.columns[:3] == ["Box No Prefix", "Kutu No", "Serial Number"]
    assert [r.row_number for r in sheet.rows] == [2, 3, 4]
    assert sheet.rows[0].get("IMEI") == "868291076903737"


def test_title_row_is_skipped(make_workbook, inventory_rows):
    path = make_workbook([["Monthly Report"]] + inventory_rows)
    sheet = decode_spreadsheet(path)
    assert sheet.header_index == 1
    assert sheet.header_row == 2
    assert sheet.columns[2] == "Serial Number"
    assert sheet.rows[0].row_number == 3


def test_decode_from_bytes(make_workbook, inventory_rows):
    path = make_workbook(inventory_rows)
    sheet = decode_spreadsheet(path.read_bytes())
    assert len(sheet.rows) == 3


def test_unreadable_bytes():
    with pytest.raises(SpreadsheetDecodeError):
        decode_spreadsheet(b"definitely not a workbook")


def test_unknown_sheet_name(make_workbook, inventory_rows):
    path = make_workbook(inventory_rows, sheet_name="Routers")
    with pytest.raises(SpreadsheetDecodeError, match="not found"):
        read_workbook(path, sheet_name="Missing")
    name, df = read_workbook(path, sheet_name="Routers")
    assert name == "Routers"
    assert df.shape == (4, 6)


def test_empty_sheet_raises():
    with pytest.raises(SheetHeaderError):
        normalize_sheet(pd.DataFrame(), "Empty")


def test_single_row_sheet_keeps_row_zero_as_header():
    df = pd.DataFrame([["IMEI"]], dtype=object)
    assert detect_header_row(df) == 0
    sheet = normalize_sheet(df, "Only")
    assert sheet.columns == ["IMEI"]
    assert sheet.rows == []


def test_sparse_first_row_is_treated_as_title():
    df = pd.DataFrame(
        [
            ["Serial Number", "IMEI"],
            ["6006566691", "868291076903737"],
        ],
        dtype=object,
    )
    assert detect_header_row(df) == 1
    sheet = normalize_sheet(df, "Two")
    assert sheet.header_row == 2
    assert sheet.columns == ["6006566691", "868291076903737"]
    assert sheet.rows == []


def test_dedupe_headers():
    assert dedupe_headers(["Box No", "Box No", "IMEI", "Box No"]) == ["Box No", "Box No_1", "IMEI", "Box No_2"]
    assert dedupe_headers(["A", "A_1", "A"]) == ["A", "A_1", "A_2"]


def test_blank_headers_and_blank_rows():
    df = pd.DataFrame(
        [
            ["Serial Number", "", "IMEI", "SSID"],
            ["6006566691", "x", "868291076903737", "net"],
            ["", "", "", ""],
            ["6006566692", "", "N/A", ""],
        ],
        dtype=object,
    )
    sheet = normalize_sheet(df, "S", null_sentinels=frozenset({"N/A"}))
    assert sheet.columns == ["Serial Number", "Column2", "IMEI", "SSID"]
    assert [r.row_number for r in sheet.rows] == [2, 4]
    assert sheet.rows[1].get("IMEI") == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, ""),
        (float("nan"), ""),
        (6006566691.0, "6006566691"),
        (1.5, "1.5"),
        (True, "TRUE"),
        (" text ", "text"),
        (868291076903737, "868291076903737"),
    ],
)
def test_cell_to_str(value, expected):
    assert cell_to_str(value) == expected


def test_numeric_cells_read_back_without_decimal_suffix(make_workbook):
    path: Path = make_workbook([["Serial Number", "IMEI", "SSID"], [6006566691, 868291076903737, "net"]])
    sheet = decode_spreadsheet(path)
    assert sheet.rows[0].get("Serial Number") == "6006566691"
    assert sheet.rows[0].get("IMEI") == "868291076903737"
