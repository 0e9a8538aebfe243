from __future__ import annotations

import json
from pathlib import Path

from inventory_import.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file", "row", "field", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        file="routers.xlsx",
        row=10,
        field="imei",
        error_type="VALIDATION_ERROR",
        message="Invalid IMEI format (should be 15 digits)",
    )
    data = json.loads(rec.to_json_line())
    assert data["file"] == "routers.xlsx"
    assert data["row"] == 10
    assert data["field"] == "imei"
    assert data["timestamp"].endswith("Z")
    assert set(data) == KEYS


def test_non_ascii_message_kept_readable():
    rec = ErrorRecord.create("envanter.xlsx", 3, "general", "MERGE_ERROR", "Seri numarası hatalı")
    assert "Seri numarası hatalı" in rec.to_json_line()


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f1.xlsx", 2, "imei", "VALIDATION_ERROR", "bad imei"))
    buf.append(ErrorRecord.create("f1.xlsx", 3, "general", "MERGE_ERROR", "connection reset"))
    path = buf.flush()
    assert path.exists()
    assert path.parent == Path("logs")
    assert path.name.startswith("errors-") and path.suffix == ".log"
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw)) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.append(ErrorRecord.create("a.xlsx", 2, "imei", "VALIDATION_ERROR", "x"))
    first = buf.flush()
    buf.append(ErrorRecord.create("b.xlsx", 5, "imei", "VALIDATION_ERROR", "y"))
    second = buf.flush()
    assert first == second
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2


def test_empty_flush_creates_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_counts_by_type(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.append(ErrorRecord.create("a.xlsx", 2, "imei", "VALIDATION_ERROR", "x"))
    buf.append(ErrorRecord.create("a.xlsx", 3, "imei", "VALIDATION_ERROR", "y"))
    buf.append(ErrorRecord.create("a.xlsx", -1, "<FILE_LEVEL>", "DECODE_ERROR", "z"))
    assert buf.counts_by_type() == {"VALIDATION_ERROR": 2, "DECODE_ERROR": 1}
    buf.flush()
    assert buf.counts_by_type() == {}
