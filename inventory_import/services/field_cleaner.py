from __future__ import annotations

import re
from dataclasses import replace

from ..models.fields import CanonicalField, CanonicalRecord
from ..models.row_data import RowIssue, ValidationOutcome

"""Field cleaner / validator.

clean_value() normalizes one cell for one canonical field; validate_row() checks a
whole CanonicalRecord. Only IMEI format problems and a missing identity (neither
serial number nor IMEI) block a row. Serial number and MAC address format
problems are warnings: the cleaned value is imported as-is.

validate_imei_checksum() implements the IMEI Luhn check. It is not part of the
default validation; pass check_imei_checksum=True to make a failing checksum a
row error.
"""

__all__ = [
    "IDENTITY_FIELD_TAG",
    "clean_value",
    "validate_row",
    "validate_imei_checksum",
    "is_valid_serial_number",
    "is_valid_imei",
    "is_valid_mac_address",
]

IDENTITY_FIELD_TAG = "serialNumber/imei"

_NON_DIGIT = re.compile(r"\D")
_MAC_SEPARATORS = re.compile(r"[:\-\s]")
_WHITESPACE = re.compile(r"\s+")
_SERIAL_RE = re.compile(r"\d{10}")
_IMEI_RE = re.compile(r"\d{15}")
_MAC_RE = re.compile(r"[0-9A-Fa-f]{12}")


def _digits_only(value: str) -> str:
    return _NON_DIGIT.sub("", value)


def clean_value(value: str, field: CanonicalField) -> str:
    """Normalize a raw cell value for ``field``. May return ""."""
    if field in (CanonicalField.SERIAL_NUMBER, CanonicalField.IMEI):
        return _digits_only(value)
    if field is CanonicalField.MAC_ADDRESS:
        return _MAC_SEPARATORS.sub("", value).upper()
    if field is CanonicalField.RVM_ID:
        return value.strip().upper()
    if field is CanonicalField.SIM_CARD_PHONE:
        return _WHITESPACE.sub("", value)
    return value.strip()


def is_valid_serial_number(value: str) -> bool:
    return _SERIAL_RE.fullmatch(value) is not None


def is_valid_imei(value: str) -> bool:
    return _IMEI_RE.fullmatch(value) is not None


def is_valid_mac_address(value: str) -> bool:
    return _MAC_RE.fullmatch(value) is not None


def validate_imei_checksum(imei: str) -> bool:
    """Luhn check over a 15 digit IMEI (every second digit from index 1 doubled)."""
    if not is_valid_imei(imei):
        return False
    total = 0
    for i, ch in enumerate(imei):
        digit = int(ch)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_row(
    record: CanonicalRecord,
    row_number: int,
    *,
    check_imei_checksum: bool = False,
) -> ValidationOutcome:
    """Clean every present field of ``record`` and collect errors / warnings.

    The input record is not modified; the cleaned copy is returned in
    ``cleaned_data``. A value that cleans to "" is dropped from the copy.
    """
    errors: list[RowIssue] = []
    warnings: list[RowIssue] = []
    cleaned = replace(record)

    for field in record.present_fields():
        raw = record.get(field) or ""
        value = clean_value(raw, field)
        cleaned.set(field, value)

        if field is CanonicalField.SERIAL_NUMBER and value and not is_valid_serial_number(value):
            warnings.append(RowIssue(
                row=row_number,
                field=field.value,
                message="Serial number format might be incorrect (expected 10 digits)",
                value=raw,
            ))
        elif field is CanonicalField.IMEI:
            if not is_valid_imei(value):
                errors.append(RowIssue(
                    row=row_number,
                    field=field.value,
                    message="Invalid IMEI format (should be 15 digits)",
                    value=raw,
                ))
            elif check_imei_checksum and not validate_imei_checksum(value):
                errors.append(RowIssue(
                    row=row_number,
                    field=field.value,
                    message="IMEI checksum mismatch",
                    value=raw,
                ))
        elif field is CanonicalField.MAC_ADDRESS and value and not is_valid_mac_address(value):
            warnings.append(RowIssue(
                row=row_number,
                field=field.value,
                message="MAC address format might be incorrect (expected 12 hex characters)",
                value=raw,
            ))

    if cleaned.serial_number is None and cleaned.imei is None:
        errors.insert(0, RowIssue(
            row=row_number,
            field=IDENTITY_FIELD_TAG,
            message="At least Serial Number or IMEI is required",
        ))

    is_valid = not errors
    return ValidationOutcome(is_valid=is_valid, errors=errors, warnings=warnings, cleaned_data=cleaned)
