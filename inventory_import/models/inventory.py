from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Inventory entities owned by the datastore.

These mirror the rows of the routers / rvm_units / sim_cards / dimdb_list tables.
The import pipeline only ever sees their ids and natural keys; the full records
are used by the in-memory store and the consistency repair.
"""

__all__ = [
    "DimDbStatus",
    "SimCardStatus",
    "Router",
    "RvmUnit",
    "SimCard",
    "DimDb",
]


class DimDbStatus(Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"


class SimCardStatus(Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"


@dataclass
class Router:
    id: str
    serial_number: str
    imei: str
    box_no: str = ""
    mac_address: str = ""
    box_no_prefix: str | None = None
    firmware: str | None = None
    ssid: str | None = None
    wifi_password: str | None = None
    device_password: str | None = None
    rvm_unit_id: str | None = None
    dim_db_id: str | None = None
    sim_card_id: str | None = None


@dataclass
class RvmUnit:
    id: str
    rvm_id: str  # upper-case natural key
    name: str | None = None
    location: str | None = None


@dataclass
class SimCard:
    id: str
    phone_number: str  # digits only
    status: SimCardStatus = SimCardStatus.AVAILABLE


@dataclass
class DimDb:
    id: str
    dim_db_code: str
    status: DimDbStatus = DimDbStatus.AVAILABLE
    description: str | None = None
