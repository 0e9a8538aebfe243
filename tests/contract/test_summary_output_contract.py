from __future__ import annotations

import re

from inventory_import.db.memory import InMemoryInventoryStore
from inventory_import.models.config_models import ImportSettings
from inventory_import.services.orchestrator import process_all

"""SUMMARY 行フォーマット契約テスト (1 ファイル 1 行)."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+file=(\S+)\s+rows=([0-9]+)\s+new=([0-9]+)\s+updated=([0-9]+)\s+"
    r"errors=([0-9]+)\s+warnings=([0-9]+)\s+created_rvm=([0-9]+)\s+created_sim=([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = (
        "SUMMARY file=routers.xlsx rows=4 new=3 updated=1 errors=0 warnings=2 "
        "created_rvm=1 created_sim=0 elapsed_sec=0.84"
    )
    assert SUMMARY_PATTERN.match(line)


def test_process_all_emits_one_summary_per_file(make_workbook, inventory_rows, capsys):
    first = make_workbook(inventory_rows, name="a.xlsx")
    second = make_workbook(inventory_rows, name="b.xlsx")
    outcomes = process_all([first, second], InMemoryInventoryStore(), settings=ImportSettings())
    out = capsys.readouterr().out

    lines = [line for line in out.splitlines() if line.startswith("SUMMARY")]
    assert len(lines) == 2
    matches = [SUMMARY_PATTERN.match(line) for line in lines]
    assert all(matches)
    assert [m.group(1) for m in matches] == ["a.xlsx", "b.xlsx"]
    assert [(m.group(3), m.group(4)) for m in matches] == [("3", "0"), ("0", "3")]
    assert [o.failed for o in outcomes] == [False, False]
