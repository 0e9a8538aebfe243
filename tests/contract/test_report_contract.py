from __future__ import annotations

from inventory_import.db.memory import InMemoryInventoryStore
from inventory_import.services.orchestrator import run_import

"""Shape of the import report returned to callers (CLI --json / HTTP layer)."""

REPORT_KEYS = {
    "success",
    "totalRows",
    "newCount",
    "updatedCount",
    "errorCount",
    "warningCount",
    "errors",
    "warnings",
    "createdRvmUnits",
    "createdSimCards",
    "columnMappings",
    "sheetName",
    "headerRow",
}


def test_report_keys(make_workbook, inventory_rows):
    data = run_import(make_workbook(inventory_rows), InMemoryInventoryStore()).to_dict()
    assert set(data) == REPORT_KEYS
    assert data["success"] is True
    assert data["totalRows"] == 3
    assert data["headerRow"] == 1
    assert data["sheetName"] == "Sheet1"


def test_column_mapping_entries(make_workbook, inventory_rows):
    data = run_import(make_workbook(inventory_rows), InMemoryInventoryStore()).to_dict()
    assert [m["systemField"] for m in data["columnMappings"]] == [
        "boxNoPrefix", "boxNo", "serialNumber", "imei", "macAddress", "rvmId",
    ]
    for mapping in data["columnMappings"]:
        assert set(mapping) == {"excelColumn", "systemField", "confidence"}
        assert 0 <= mapping["confidence"] <= 1


def test_error_entries(make_workbook, inventory_rows):
    inventory_rows.append(["RUT901", "00004", "6006566694", "86829107690", "", ""])
    data = run_import(make_workbook(inventory_rows), InMemoryInventoryStore()).to_dict()
    assert data["success"] is False
    assert data["errors"] == [{
        "row": 5,
        "field": "imei",
        "message": "Invalid IMEI format (should be 15 digits)",
        "value": "86829107690",
    }]


def test_second_import_updates(make_workbook, inventory_rows):
    store = InMemoryInventoryStore()
    path = make_workbook(inventory_rows)
    run_import(path, store)
    data = run_import(path, store).to_dict()
    assert (data["newCount"], data["updatedCount"]) == (0, 3)
    assert data["createdRvmUnits"] == []
