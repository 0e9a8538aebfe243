from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import fields as dataclass_fields, replace
from datetime import UTC, datetime
from typing import Any

from ..models.inventory import DimDb, DimDbStatus, Router, RvmUnit, SimCard, SimCardStatus
from .store import LINK_COLUMNS, DuplicateKeyError, RouterLink, StoreError

"""Dict-backed InventoryStore.

Same uniqueness rules as the production schema (serial_number, imei, rvm_id,
phone_number are unique). Used by the test suite and by the CLI when
DISABLE_DB_CONNECT=1 (nothing is persisted in that mode).
"""

__all__ = [
    "InMemoryInventoryStore",
]

_ROUTER_FIELDS = {f.name for f in dataclass_fields(Router)} - {"id"}


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryInventoryStore:
    def __init__(self) -> None:
        self.routers: dict[str, Router] = {}
        self.rvm_units: dict[str, RvmUnit] = {}
        self.sim_cards: dict[str, SimCard] = {}
        self.dim_dbs: dict[str, DimDb] = {}
        self.activities: list[dict[str, Any]] = []

    # -- seeding helpers (tests / fixtures) ---------------------------------
    def add_router(self, **kwargs: Any) -> Router:
        router = Router(id=kwargs.pop("id", _new_id()), **kwargs)
        self._check_router_unique(router, exclude_id=None)
        self.routers[router.id] = router
        return router

    def add_dim_db(self, dim_db_code: str, status: DimDbStatus = DimDbStatus.AVAILABLE) -> DimDb:
        dim = DimDb(id=_new_id(), dim_db_code=dim_db_code, status=status)
        self.dim_dbs[dim.id] = dim
        return dim

    def add_sim_card(self, phone: str, status: SimCardStatus = SimCardStatus.AVAILABLE) -> SimCard:
        sim_id = self.create_sim_card(phone, status)
        return self.sim_cards[sim_id]

    def get_router(self, serial: str | None = None, imei: str | None = None) -> Router | None:
        router_id = self.find_router_by_serial_or_imei(serial, imei)
        return self.routers.get(router_id) if router_id else None

    # -- bulk preload -------------------------------------------------------
    def list_router_keys(self) -> list[tuple[str | None, str | None, str]]:
        return [(r.serial_number, r.imei, r.id) for r in self.routers.values()]

    def list_rvm_unit_keys(self) -> list[tuple[str, str]]:
        return [(u.rvm_id, u.id) for u in self.rvm_units.values()]

    def list_sim_card_keys(self) -> list[tuple[str, str]]:
        return [(s.phone_number, s.id) for s in self.sim_cards.values()]

    # -- lookups ------------------------------------------------------------
    def find_router_by_serial_or_imei(
        self, serial: str | None = None, imei: str | None = None
    ) -> str | None:
        if serial:
            for r in self.routers.values():
                if r.serial_number == serial:
                    return r.id
        if imei:
            for r in self.routers.values():
                if r.imei == imei:
                    return r.id
        return None

    def find_rvm_unit_by_rvm_id(self, rvm_id: str) -> str | None:
        for u in self.rvm_units.values():
            if u.rvm_id == rvm_id:
                return u.id
        return None

    def find_sim_card_by_phone(self, phone: str) -> str | None:
        for s in self.sim_cards.values():
            if s.phone_number == phone:
                return s.id
        return None

    # -- writes -------------------------------------------------------------
    def _check_router_unique(self, router: Router, exclude_id: str | None) -> None:
        for other in self.routers.values():
            if other.id == exclude_id:
                continue
            if router.serial_number and other.serial_number == router.serial_number:
                raise DuplicateKeyError(f"duplicate serial_number {router.serial_number}")
            if router.imei and other.imei == router.imei:
                raise DuplicateKeyError(f"duplicate imei {router.imei}")

    def create_router(self, fields: Mapping[str, Any]) -> str:
        unknown = set(fields) - _ROUTER_FIELDS
        if unknown:
            raise StoreError(f"unknown router fields: {sorted(unknown)}")
        router = Router(id=_new_id(), **dict(fields))
        self._check_router_unique(router, exclude_id=None)
        self.routers[router.id] = router
        return router.id

    def update_router(self, router_id: str, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - _ROUTER_FIELDS
        if unknown:
            raise StoreError(f"unknown router fields: {sorted(unknown)}")
        current = self.routers.get(router_id)
        if current is None:
            raise StoreError(f"router {router_id} not found")
        updated = replace(current, **dict(fields))
        self._check_router_unique(updated, exclude_id=router_id)
        self.routers[router_id] = updated

    def create_rvm_unit(self, rvm_id: str, name: str) -> str:
        if self.find_rvm_unit_by_rvm_id(rvm_id) is not None:
            raise DuplicateKeyError(f"duplicate rvm_id {rvm_id}")
        unit = RvmUnit(id=_new_id(), rvm_id=rvm_id, name=name)
        self.rvm_units[unit.id] = unit
        return unit.id

    def create_sim_card(self, phone: str, status: SimCardStatus = SimCardStatus.ASSIGNED) -> str:
        if self.find_sim_card_by_phone(phone) is not None:
            raise DuplicateKeyError(f"duplicate phone_number {phone}")
        sim = SimCard(id=_new_id(), phone_number=phone, status=status)
        self.sim_cards[sim.id] = sim
        return sim.id

    def record_activity(
        self,
        action: str,
        entity_type: str,
        user_id: str,
        details: Mapping[str, Any],
        entity_id: str | None = None,
    ) -> None:
        self.activities.append({
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "user_id": user_id,
            "details": dict(details),
            "created_at": datetime.now(UTC),
        })

    # -- consistency repair -------------------------------------------------
    def list_router_links(self) -> list[RouterLink]:
        return [
            RouterLink(
                id=r.id,
                box_no=r.box_no,
                rvm_unit_id=r.rvm_unit_id,
                dim_db_id=r.dim_db_id,
                sim_card_id=r.sim_card_id,
            )
            for r in self.routers.values()
        ]

    def list_rvm_unit_ids(self) -> set[str]:
        return set(self.rvm_units)

    def list_dim_dbs(self) -> list[DimDb]:
        return list(self.dim_dbs.values())

    def list_sim_cards(self) -> list[SimCard]:
        return list(self.sim_cards.values())

    def clear_router_links(self, router_ids: Iterable[str], column: str) -> int:
        if column not in LINK_COLUMNS:
            raise StoreError(f"not a router link column: {column}")
        count = 0
        for router_id in router_ids:
            router = self.routers.get(router_id)
            if router is not None:
                setattr(router, column, None)
                count += 1
        return count

    def set_dim_db_status(self, ids: Iterable[str], status: DimDbStatus) -> int:
        count = 0
        for dim_id in ids:
            if dim_id in self.dim_dbs:
                self.dim_dbs[dim_id].status = status
                count += 1
        return count

    def set_sim_card_status(self, ids: Iterable[str], status: SimCardStatus) -> int:
        count = 0
        for sim_id in ids:
            if sim_id in self.sim_cards:
                self.sim_cards[sim_id].status = status
                count += 1
        return count
