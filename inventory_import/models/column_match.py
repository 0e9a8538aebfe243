from __future__ import annotations

from dataclasses import dataclass

from .fields import CanonicalField

__all__ = [
    "ColumnMatch",
]


@dataclass(frozen=True)
class ColumnMatch:
    """Header classifier verdict for one spreadsheet column.

    system_field is None when no alias cleared the acceptance threshold;
    confidence is still the best raw score seen for the header.
    """
    excel_column: str
    system_field: CanonicalField | None
    confidence: float

    def to_dict(self) -> dict[str, object]:
        return {
            "excelColumn": self.excel_column,
            "systemField": self.system_field.value if self.system_field is not None else None,
            "confidence": round(self.confidence, 4),
        }
