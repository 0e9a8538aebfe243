from __future__ import annotations

from collections.abc import Sequence

from ..models.column_match import ColumnMatch
from ..models.fields import CanonicalRecord
from ..models.row_data import RawRow
from .field_cleaner import clean_value
from .header_classifier import ACCEPT_THRESHOLD

__all__ = [
    "map_row",
]


def map_row(row: RawRow, matches: Sequence[ColumnMatch]) -> CanonicalRecord:
    """Build the CanonicalRecord for one raw row.

    Unclassified columns (no field, or confidence below the acceptance threshold)
    are dropped. Blank cells and values that clean to "" leave the field absent.
    """
    record = CanonicalRecord()
    for match in matches:
        if match.system_field is None or match.confidence < ACCEPT_THRESHOLD:
            continue
        raw = row.get(match.excel_column).strip()
        if not raw:
            continue
        cleaned = clean_value(raw, match.system_field)
        if cleaned:
            record.set(match.system_field, cleaned)
    return record
