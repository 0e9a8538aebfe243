from __future__ import annotations

from ..db.store import InventoryStore
from ..excel.reader import DecodedSheet
from ..models.config_models import ImportSettings
from ..models.fields import CanonicalRecord
from ..models.processing_result import ImportPreview
from ..models.row_data import RowIssue
from .field_cleaner import validate_row
from .orchestrator import classify_sheet
from .row_mapper import map_row

__all__ = [
    "SAMPLE_SIZE",
    "build_preview",
]

SAMPLE_SIZE = 10


def build_preview(
    sheet: DecodedSheet,
    store: InventoryStore,
    *,
    settings: ImportSettings | None = None,
) -> ImportPreview:
    """Dry run: classify every row as new / existing / duplicate without writing.

    A row repeating a serial number or IMEI seen earlier in the same sheet counts
    as a duplicate. Invalid rows contribute their validation errors and nothing
    else.
    """
    settings = settings or ImportSettings()
    matches = classify_sheet(sheet)

    existing_serials: set[str] = set()
    existing_imeis: set[str] = set()
    for serial, imei, _ in store.list_router_keys():
        if serial:
            existing_serials.add(serial)
        if imei:
            existing_imeis.add(imei)

    errors: list[RowIssue] = []
    sample: list[CanonicalRecord] = []
    seen_serials: set[str] = set()
    seen_imeis: set[str] = set()
    new_records = existing_records = duplicates = 0

    for row in sheet.rows:
        outcome = validate_row(
            map_row(row, matches), row.row_number, check_imei_checksum=settings.check_imei_checksum
        )
        errors.extend(outcome.errors)
        if not outcome.is_valid:
            continue
        record = outcome.cleaned_data

        if record.serial_number in seen_serials or record.imei in seen_imeis:
            duplicates += 1
            continue
        if record.serial_number:
            seen_serials.add(record.serial_number)
        if record.imei:
            seen_imeis.add(record.imei)

        if record.serial_number in existing_serials or record.imei in existing_imeis:
            existing_records += 1
        else:
            new_records += 1

        if len(sample) < SAMPLE_SIZE:
            sample.append(record)

    return ImportPreview(
        total_rows=len(sheet.rows),
        new_records=new_records,
        existing_records=existing_records,
        duplicates=duplicates,
        errors=errors,
        column_mappings=matches,
        sample_data=sample,
        header_row=sheet.header_row,
    )
