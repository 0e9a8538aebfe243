from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from ..models.column_match import ColumnMatch
from ..models.fields import CanonicalField

"""Header classifier: raw spreadsheet column names -> canonical inventory fields.

Each canonical field carries a list of known header aliases (English and Turkish,
as the device suppliers and warehouse staff write them) and a weight. A header is
scored against every alias:

    exact match after normalization      -> 1.0
    containment in either direction      -> 0.85
    otherwise                            -> 1 - levenshtein(a, b) / max(len(a), len(b))

and the similarity is multiplied by the field weight. Headers are assigned in one
greedy pass in sheet order. A field claimed with a score >= LOCK_THRESHOLD is not
offered to later headers; weaker claims (>= ACCEPT_THRESHOLD) leave it available
for a better column further right. Assignments are never revisited, so two
columns scoring in [0.5, 0.7) for the same field both keep it.
"""

__all__ = [
    "ACCEPT_THRESHOLD",
    "LOCK_THRESHOLD",
    "SUGGEST_THRESHOLD",
    "FieldPattern",
    "FIELD_PATTERNS",
    "normalize_header",
    "similarity",
    "HeaderClassifier",
    "header_classifier",
    "detect_columns",
    "suggest_mapping",
]

ACCEPT_THRESHOLD = 0.5
LOCK_THRESHOLD = 0.7
SUGGEST_THRESHOLD = 0.3

CONTAINMENT_SCORE = 0.85

_SEPARATORS = re.compile(r"[_\-.]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class FieldPattern:
    field: CanonicalField
    patterns: tuple[str, ...]
    weight: float


# 順序はタイブレークに影響する (同点なら先勝ち)
FIELD_PATTERNS: tuple[FieldPattern, ...] = (
    FieldPattern(
        CanonicalField.BOX_NO_PREFIX,
        (
            "box no prefix", "prefix", "box prefix", "model", "model no",
            "ürün kodu", "product code", "part no", "part number", "rut901",
            "box no", "box no.",
        ),
        0.8,
    ),
    FieldPattern(
        CanonicalField.BOX_NO,
        (
            "box no_1", "box no._1", "box_1", "kutu", "kutu no", "boxno", "box number",
            "box id", "paket no", "koli no", "koli", "ambalaj no",
        ),
        0.9,
    ),
    FieldPattern(
        CanonicalField.SERIAL_NUMBER,
        (
            "s/n", "sn", "serial", "seri", "seri no", "serial number", "serialnumber",
            "seri numarası", "serial no", "ser no", "ser.no", "ser. no", "serno", "s.n",
            "s.no", "s. no", "ürün seri", "cihaz seri", "router seri", "modem seri",
        ),
        1.0,
    ),
    FieldPattern(
        CanonicalField.IMEI,
        (
            "imei", "imei no", "imei number", "imei numarası", "imei1", "imei 1",
            "device imei", "cihaz imei", "modem imei", "router imei",
        ),
        1.0,
    ),
    FieldPattern(
        CanonicalField.MAC_ADDRESS,
        (
            "mac", "mac address", "macaddress", "mac adresi", "mac addr",
            "wifi mac", "wlan mac", "ethernet mac", "lan mac", "mac id",
        ),
        1.0,
    ),
    FieldPattern(
        CanonicalField.FIRMWARE,
        (
            "fw", "firmware", "fw version", "firmware version", "version", "versiyon",
            "yazılım", "yazılım versiyonu", "sw version", "software version",
            "fw ver", "firmware ver", "yazılım sürümü",
        ),
        0.9,
    ),
    FieldPattern(
        CanonicalField.SSID,
        (
            "ssid", "wifi ssid", "wifi name", "network name", "ağ adı",
            "wifi adı", "kablosuz ağ", "wireless name", "wlan name", "ap name",
        ),
        1.0,
    ),
    FieldPattern(
        CanonicalField.WIFI_PASSWORD,
        (
            "wifi password", "wifipassword", "wifi pass", "wifipass", "wifi şifre", "wifi pw",
            "wifi şifresi", "wireless password", "wlan password", "wlan şifre", "kablosuz şifre",
            "wifi key", "wireless key", "wpa key", "wpa password", "network password",
        ),
        1.0,
    ),
    FieldPattern(
        CanonicalField.DEVICE_PASSWORD,
        (
            "device password", "devicepassword", "panel password", "panel pass", "panel şifre",
            "cihaz şifre", "admin password", "şifre", "password", "admin şifre", "yönetici şifre",
            "router password", "modem şifre", "web password", "login password", "giriş şifre",
        ),
        0.9,
    ),
    FieldPattern(
        CanonicalField.RVM_ID,
        (
            "rvm", "rvm id", "rvmid", "rvm no", "rvm kodu", "rvm code",
            "makine id", "machine id", "otomat id", "otomat no",
        ),
        1.0,
    ),
    FieldPattern(
        CanonicalField.DIM_DB_ID,
        (
            "dim-db", "dimdb", "dim db", "dim-db id", "dimdb id",
            "dim", "db id", "database id", "veritabanı id",
        ),
        1.0,
    ),
    FieldPattern(
        CanonicalField.SIM_CARD_PHONE,
        (
            "sim", "sim no", "sim card", "sim kart", "sim kart no", "simcard",
            "phone", "phone number", "telefon", "telefon no", "gsm", "gsm no", "msisdn",
        ),
        0.9,
    ),
)


def normalize_header(text: str) -> str:
    """lower-case, ``_ - .`` to spaces, collapse whitespace, trim."""
    lowered = _SEPARATORS.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def similarity(header: str, pattern: str) -> float:
    """Similarity in [0, 1] between a header and one alias (both raw)."""
    a = normalize_header(header)
    b = normalize_header(pattern)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if b in a or a in b:
        return CONTAINMENT_SCORE
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


class HeaderClassifier:
    def __init__(self, patterns: Sequence[FieldPattern] = FIELD_PATTERNS) -> None:
        self._patterns = tuple(patterns)

    def _best_for_field(self, header: str, fp: FieldPattern) -> float:
        return max(similarity(header, p) * fp.weight for p in fp.patterns)

    def detect_columns(self, headers: Sequence[str]) -> list[ColumnMatch]:
        """One ColumnMatch per header, same order."""
        matches: list[ColumnMatch] = []
        locked: set[CanonicalField] = set()

        for header in headers:
            best_field: CanonicalField | None = None
            best_score = 0.0
            for fp in self._patterns:
                if fp.field in locked:
                    continue
                score = self._best_for_field(header, fp)
                if score > best_score:
                    best_field, best_score = fp.field, score

            assigned = best_field if best_score >= ACCEPT_THRESHOLD else None
            if assigned is not None and best_score >= LOCK_THRESHOLD:
                locked.add(assigned)

            matches.append(ColumnMatch(excel_column=header, system_field=assigned, confidence=best_score))

        return matches

    def suggest_mapping(self, header: str) -> list[tuple[CanonicalField, float]]:
        """All fields scoring above SUGGEST_THRESHOLD for a single header, best first."""
        suggestions = []
        for fp in self._patterns:
            score = self._best_for_field(header, fp)
            if score > SUGGEST_THRESHOLD:
                suggestions.append((fp.field, score))
        # sorted() is stable: equal scores keep table order
        return sorted(suggestions, key=lambda s: s[1], reverse=True)


header_classifier = HeaderClassifier()


def detect_columns(headers: Sequence[str]) -> list[ColumnMatch]:
    return header_classifier.detect_columns(headers)


def suggest_mapping(header: str) -> list[tuple[CanonicalField, float]]:
    return header_classifier.suggest_mapping(header)
