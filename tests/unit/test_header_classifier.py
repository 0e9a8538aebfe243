from __future__ import annotations

import pytest

from inventory_import.models.fields import CanonicalField
from inventory_import.services.header_classifier import (
    ACCEPT_THRESHOLD,
    LOCK_THRESHOLD,
    SUGGEST_THRESHOLD,
    FieldPattern,
    HeaderClassifier,
    detect_columns,
    normalize_header,
    similarity,
    suggest_mapping,
)


def test_normalize_header():
    assert normalize_header("  Serial_Number-1.x ") == "serial number 1 x"
    assert normalize_header("MAC   Address") == "mac address"
    assert normalize_header("") == ""


def test_similarity_exact_containment_and_edit_distance():
    assert similarity("MAC_Address", "mac address") == 1.0
    assert similarity("IMEI No 2", "imei") == pytest.approx(0.85)
    assert similarity("seri", "serl") == pytest.approx(0.75)


def test_similarity_empty_header_scores_zero():
    assert similarity("", "imei") == 0.0
    assert similarity("   ", "sn") == 0.0


def test_detect_columns_basic_headers_in_order():
    matches = detect_columns(["S/N", "IMEI", "MAC", "SSID"])
    assert [m.system_field for m in matches] == [
        CanonicalField.SERIAL_NUMBER,
        CanonicalField.IMEI,
        CanonicalField.MAC_ADDRESS,
        CanonicalField.SSID,
    ]
    assert all(m.confidence > 0.8 for m in matches)
    assert [m.excel_column for m in matches] == ["S/N", "IMEI", "MAC", "SSID"]


def test_detect_columns_turkish_aliases():
    matches = detect_columns(["Seri Numarası", "Cihaz IMEI", "MAC Adresi", "Telefon No"])
    assert [m.system_field for m in matches] == [
        CanonicalField.SERIAL_NUMBER,
        CanonicalField.IMEI,
        CanonicalField.MAC_ADDRESS,
        CanonicalField.SIM_CARD_PHONE,
    ]


def test_repeated_box_no_columns_become_prefix_and_box_no():
    matches = detect_columns(["Box No", "Box No_1"])
    assert matches[0].system_field is CanonicalField.BOX_NO_PREFIX
    assert matches[1].system_field is CanonicalField.BOX_NO


def test_locked_field_not_assigned_twice():
    matches = detect_columns(["Serial", "Serial Number"])
    assert matches[0].system_field is CanonicalField.SERIAL_NUMBER
    assert matches[0].confidence >= LOCK_THRESHOLD
    assert matches[1].system_field is not CanonicalField.SERIAL_NUMBER


def test_low_confidence_assignment_does_not_lock():
    classifier = HeaderClassifier([FieldPattern(CanonicalField.SSID, ("ssid",), 0.6)])
    matches = classifier.detect_columns(["SSID", "SSID"])
    assert [m.system_field for m in matches] == [CanonicalField.SSID, CanonicalField.SSID]
    assert ACCEPT_THRESHOLD <= matches[0].confidence < LOCK_THRESHOLD


def test_unrecognized_header_keeps_raw_confidence():
    (match,) = detect_columns(["Notes"])
    assert match.system_field is None
    assert 0.0 <= match.confidence < ACCEPT_THRESHOLD


def test_empty_header_is_unmapped():
    (match,) = detect_columns([""])
    assert match.system_field is None
    assert match.confidence == 0.0


def test_tie_goes_to_table_order():
    classifier = HeaderClassifier([
        FieldPattern(CanonicalField.FIRMWARE, ("version",), 1.0),
        FieldPattern(CanonicalField.SSID, ("version",), 1.0),
    ])
    (match,) = classifier.detect_columns(["Version"])
    assert match.system_field is CanonicalField.FIRMWARE


def test_suggest_mapping_sorted_and_above_threshold():
    suggestions = suggest_mapping("Seri No")
    assert suggestions[0] == (CanonicalField.SERIAL_NUMBER, 1.0)
    scores = [s for _, s in suggestions]
    assert scores == sorted(scores, reverse=True)
    assert all(s > SUGGEST_THRESHOLD for s in scores)


def test_to_dict_shape():
    (match,) = detect_columns(["IMEI"])
    assert match.to_dict() == {"excelColumn": "IMEI", "systemField": "imei", "confidence": 1.0}
