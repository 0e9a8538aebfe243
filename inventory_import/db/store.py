from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from ..models.inventory import DimDb, DimDbStatus, SimCard, SimCardStatus

"""Datastore contract used by the import pipeline and the consistency repair.

Two implementations ship with the package:
- PostgresInventoryStore (psycopg2 cursor, production)
- InMemoryInventoryStore (dicts, tests and mock mode)

Router field mappings passed to create_router / update_router use Router
attribute names (serial_number, rvm_unit_id, ...). update_router only touches the
keys it is given.
"""

__all__ = [
    "StoreError",
    "DuplicateKeyError",
    "RouterLink",
    "LINK_COLUMNS",
    "InventoryStore",
]

LINK_COLUMNS = ("rvm_unit_id", "dim_db_id", "sim_card_id")


class StoreError(Exception):
    """Any datastore failure."""


class DuplicateKeyError(StoreError):
    """A unique natural key (serial, IMEI, rvmId, phone) already exists."""


@dataclass(frozen=True)
class RouterLink:
    """Foreign keys of one router, as needed by the consistency repair."""
    id: str
    box_no: str
    rvm_unit_id: str | None
    dim_db_id: str | None
    sim_card_id: str | None


class InventoryStore(Protocol):
    # bulk preload (run snapshot)
    def list_router_keys(self) -> list[tuple[str | None, str | None, str]]: ...
    def list_rvm_unit_keys(self) -> list[tuple[str, str]]: ...
    def list_sim_card_keys(self) -> list[tuple[str, str]]: ...

    # single-key lookups
    def find_router_by_serial_or_imei(
        self, serial: str | None = None, imei: str | None = None
    ) -> str | None: ...
    def find_rvm_unit_by_rvm_id(self, rvm_id: str) -> str | None: ...
    def find_sim_card_by_phone(self, phone: str) -> str | None: ...

    # writes
    def create_router(self, fields: Mapping[str, Any]) -> str: ...
    def update_router(self, router_id: str, fields: Mapping[str, Any]) -> None: ...
    def create_rvm_unit(self, rvm_id: str, name: str) -> str: ...
    def create_sim_card(self, phone: str, status: SimCardStatus = SimCardStatus.ASSIGNED) -> str: ...
    def record_activity(
        self,
        action: str,
        entity_type: str,
        user_id: str,
        details: Mapping[str, Any],
        entity_id: str | None = None,
    ) -> None: ...

    # consistency repair
    def list_router_links(self) -> list[RouterLink]: ...
    def list_rvm_unit_ids(self) -> set[str]: ...
    def list_dim_dbs(self) -> list[DimDb]: ...
    def list_sim_cards(self) -> list[SimCard]: ...
    def clear_router_links(self, router_ids: Iterable[str], column: str) -> int: ...
    def set_dim_db_status(self, ids: Iterable[str], status: DimDbStatus) -> int: ...
    def set_sim_card_status(self, ids: Iterable[str], status: SimCardStatus) -> int: ...
