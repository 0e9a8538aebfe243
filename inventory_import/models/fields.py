from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum

"""Canonical inventory fields and the sparse record built from one spreadsheet row.

A spreadsheet column is classified into at most one CanonicalField. The row mapper
then fills a CanonicalRecord with the cleaned values of the classified columns.
Absent fields stay None (never an empty string) so that the merge can tell
"column not supplied" apart from "supplied value".
"""

__all__ = [
    "CanonicalField",
    "CanonicalRecord",
]


class CanonicalField(Enum):
    """Closed set of schema fields a spreadsheet column can be classified into.

    Values are the wire names used in reports; ``attr`` is the attribute name on
    CanonicalRecord.
    """
    BOX_NO_PREFIX = "boxNoPrefix"
    BOX_NO = "boxNo"
    SERIAL_NUMBER = "serialNumber"
    IMEI = "imei"
    MAC_ADDRESS = "macAddress"
    FIRMWARE = "firmware"
    SSID = "ssid"
    WIFI_PASSWORD = "wifiPassword"
    DEVICE_PASSWORD = "devicePassword"
    RVM_ID = "rvmId"
    DIM_DB_ID = "dimDbId"
    SIM_CARD_PHONE = "simCardPhone"

    @property
    def attr(self) -> str:
        return self.name.lower()

    @classmethod
    def from_wire(cls, name: str) -> CanonicalField:
        """Look up a field by wire name (``serialNumber``) or attribute name (``serial_number``)."""
        for member in cls:
            if name in (member.value, member.attr):
                return member
        raise ValueError(f"unknown canonical field: {name!r}")


@dataclass
class CanonicalRecord:
    """Cleaned values of one spreadsheet row, keyed by canonical field."""
    box_no_prefix: str | None = None
    box_no: str | None = None
    serial_number: str | None = None
    imei: str | None = None
    mac_address: str | None = None
    firmware: str | None = None
    ssid: str | None = None
    wifi_password: str | None = None
    device_password: str | None = None
    rvm_id: str | None = None
    dim_db_id: str | None = None
    sim_card_phone: str | None = None

    def get(self, field: CanonicalField) -> str | None:
        return getattr(self, field.attr)

    def set(self, field: CanonicalField, value: str | None) -> None:
        # 空文字は「未指定」と区別できなくなるので None に寄せる
        setattr(self, field.attr, value or None)

    def present_fields(self) -> list[CanonicalField]:
        return [f for f in CanonicalField if self.get(f) is not None]

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> dict[str, str]:
        """Wire representation containing only the present fields."""
        out: dict[str, str] = {}
        for f in CanonicalField:
            value = self.get(f)
            if value is not None:
                out[f.value] = value
        return out
