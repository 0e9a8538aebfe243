from __future__ import annotations

from dataclasses import dataclass, field

from .fields import CanonicalRecord

"""Row level models for the spreadsheet import pipeline.

RawRow is one decoded spreadsheet data row, RowIssue a single error or warning
attached to a row, ValidationOutcome the cleaner/validator verdict for a row.
"""

__all__ = [
    "RawRow",
    "RowIssue",
    "ValidationOutcome",
]


@dataclass(frozen=True)
class RawRow:
    """One spreadsheet data row after decoding.

    row_number is the 1-based row in the sheet as a user sees it in Excel
    (header row + 1 for the first data row).
    """
    row_number: int
    values: dict[str, str]  # column key -> cell text ("" for blank cells)

    def get(self, column: str) -> str:
        return self.values.get(column, "")


@dataclass(frozen=True)
class RowIssue:
    """Row error or warning. ``field`` is a wire field name, ``serialNumber/imei`` or ``general``."""
    row: int
    field: str
    message: str
    value: str | None = None

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"row": self.row, "field": self.field, "message": self.message}
        if self.value is not None:
            out["value"] = self.value
        return out


@dataclass
class ValidationOutcome:
    is_valid: bool
    errors: list[RowIssue] = field(default_factory=list)
    warnings: list[RowIssue] = field(default_factory=list)
    cleaned_data: CanonicalRecord = field(default_factory=CanonicalRecord)
