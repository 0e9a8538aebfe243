from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.errors
from psycopg2 import sql
from psycopg2.extras import Json

from ..models.inventory import DimDb, DimDbStatus, SimCard, SimCardStatus
from .store import LINK_COLUMNS, DuplicateKeyError, RouterLink, StoreError

"""PostgreSQL implementation of InventoryStore (psycopg2).

The cursor is expected to come from a connection in autocommit mode: each
statement commits on its own, so rows merged before a failing row stay
persisted (at-least-once import, no run-level transaction). Unique constraint
violations surface as DuplicateKeyError, every other driver error as StoreError.

Tables: routers, rvm_units, sim_cards, dimdb_list, activity_logs.
"""

__all__ = [
    "PostgresInventoryStore",
    "ROUTER_COLUMN_NAMES",
]

# Router attribute -> routers column
ROUTER_COLUMN_NAMES: dict[str, str] = {
    "box_no_prefix": "box_no_prefix",
    "box_no": "box_no",
    "serial_number": "serial_number",
    "imei": "imei",
    "mac_address": "mac_address",
    "firmware": "firmware",
    "ssid": "ssid",
    "wifi_password": "wifi_password",
    "device_password": "device_password",
    "rvm_unit_id": "rvm_unit_id",
    "dim_db_id": "dimdb_id",
    "sim_card_id": "sim_card_id",
}


def _new_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except psycopg2.errors.UniqueViolation as e:
        raise DuplicateKeyError(f"{action}: {e.pgerror or e}".strip()) from e
    except psycopg2.Error as e:
        raise StoreError(f"{action}: {e}".strip()) from e


def _router_columns(fields: Mapping[str, Any]) -> list[tuple[str, Any]]:
    unknown = set(fields) - set(ROUTER_COLUMN_NAMES)
    if unknown:
        raise StoreError(f"unknown router fields: {sorted(unknown)}")
    return [(ROUTER_COLUMN_NAMES[k], v) for k, v in fields.items()]


class PostgresInventoryStore:
    def __init__(self, cursor: Any) -> None:
        self._cur = cursor

    def _fetchall(self, action: str, query: Any, params: Any = None) -> list[tuple[Any, ...]]:
        with _translate_errors(action):
            self._cur.execute(query, params)
            return list(self._cur.fetchall())

    def _fetchone(self, action: str, query: Any, params: Any = None) -> tuple[Any, ...] | None:
        with _translate_errors(action):
            self._cur.execute(query, params)
            return self._cur.fetchone()

    def _execute(self, action: str, query: Any, params: Any = None) -> int:
        with _translate_errors(action):
            self._cur.execute(query, params)
            return self._cur.rowcount

    # -- bulk preload -------------------------------------------------------
    def list_router_keys(self) -> list[tuple[str | None, str | None, str]]:
        rows = self._fetchall("list routers", "SELECT serial_number, imei, id FROM routers")
        return [(r[0], r[1], r[2]) for r in rows]

    def list_rvm_unit_keys(self) -> list[tuple[str, str]]:
        rows = self._fetchall("list rvm units", "SELECT rvm_id, id FROM rvm_units")
        return [(r[0], r[1]) for r in rows]

    def list_sim_card_keys(self) -> list[tuple[str, str]]:
        rows = self._fetchall("list sim cards", "SELECT phone_number, id FROM sim_cards")
        return [(r[0], r[1]) for r in rows]

    # -- lookups ------------------------------------------------------------
    def find_router_by_serial_or_imei(
        self, serial: str | None = None, imei: str | None = None
    ) -> str | None:
        if serial:
            row = self._fetchone(
                "find router", "SELECT id FROM routers WHERE serial_number = %s", (serial,)
            )
            if row:
                return row[0]
        if imei:
            row = self._fetchone("find router", "SELECT id FROM routers WHERE imei = %s", (imei,))
            if row:
                return row[0]
        return None

    def find_rvm_unit_by_rvm_id(self, rvm_id: str) -> str | None:
        row = self._fetchone("find rvm unit", "SELECT id FROM rvm_units WHERE rvm_id = %s", (rvm_id,))
        return row[0] if row else None

    def find_sim_card_by_phone(self, phone: str) -> str | None:
        row = self._fetchone(
            "find sim card", "SELECT id FROM sim_cards WHERE phone_number = %s", (phone,)
        )
        return row[0] if row else None

    # -- writes -------------------------------------------------------------
    def create_router(self, fields: Mapping[str, Any]) -> str:
        router_id = _new_id()
        columns = [("id", router_id)] + _router_columns(fields)
        query = sql.SQL(
            "INSERT INTO routers ({cols}, created_at, updated_at, imported_at) "
            "VALUES ({vals}, NOW(), NOW(), NOW()) RETURNING id"
        ).format(
            cols=sql.SQL(", ").join(sql.Identifier(c) for c, _ in columns),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        row = self._fetchone("create router", query, [v for _, v in columns])
        return row[0] if row else router_id

    def update_router(self, router_id: str, fields: Mapping[str, Any]) -> None:
        columns = _router_columns(fields)
        if not columns:
            return
        query = sql.SQL("UPDATE routers SET {assignments}, updated_at = NOW() WHERE id = %s").format(
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(c)) for c, _ in columns
            )
        )
        updated = self._execute("update router", query, [v for _, v in columns] + [router_id])
        if updated == 0:
            raise StoreError(f"router {router_id} not found")

    def create_rvm_unit(self, rvm_id: str, name: str) -> str:
        row = self._fetchone(
            "create rvm unit",
            "INSERT INTO rvm_units (id, rvm_id, name, created_at, updated_at) "
            "VALUES (%s, %s, %s, NOW(), NOW()) RETURNING id",
            (_new_id(), rvm_id, name),
        )
        if row is None:
            raise StoreError(f"create rvm unit {rvm_id}: no id returned")
        return row[0]

    def create_sim_card(self, phone: str, status: SimCardStatus = SimCardStatus.ASSIGNED) -> str:
        row = self._fetchone(
            "create sim card",
            "INSERT INTO sim_cards (id, phone_number, status, created_at, updated_at) "
            "VALUES (%s, %s, %s, NOW(), NOW()) RETURNING id",
            (_new_id(), phone, status.value),
        )
        if row is None:
            raise StoreError(f"create sim card {phone}: no id returned")
        return row[0]

    def record_activity(
        self,
        action: str,
        entity_type: str,
        user_id: str,
        details: Mapping[str, Any],
        entity_id: str | None = None,
    ) -> None:
        self._execute(
            "record activity",
            "INSERT INTO activity_logs (id, action, entity_type, entity_id, details, user_id, created_at) "
            "VALUES (%s, %s, %s, %s, %s, %s, NOW())",
            (_new_id(), action, entity_type, entity_id, Json(dict(details)), user_id),
        )

    # -- consistency repair -------------------------------------------------
    def list_router_links(self) -> list[RouterLink]:
        rows = self._fetchall(
            "list router links",
            "SELECT id, box_no, rvm_unit_id, dimdb_id, sim_card_id FROM routers",
        )
        return [
            RouterLink(id=r[0], box_no=r[1], rvm_unit_id=r[2], dim_db_id=r[3], sim_card_id=r[4])
            for r in rows
        ]

    def list_rvm_unit_ids(self) -> set[str]:
        return {r[0] for r in self._fetchall("list rvm unit ids", "SELECT id FROM rvm_units")}

    def list_dim_dbs(self) -> list[DimDb]:
        rows = self._fetchall("list dim-db", "SELECT id, dimdb_code, status FROM dimdb_list")
        return [DimDb(id=r[0], dim_db_code=r[1], status=DimDbStatus(r[2])) for r in rows]

    def list_sim_cards(self) -> list[SimCard]:
        rows = self._fetchall("list sim cards", "SELECT id, phone_number, status FROM sim_cards")
        return [SimCard(id=r[0], phone_number=r[1], status=SimCardStatus(r[2])) for r in rows]

    def clear_router_links(self, router_ids: Iterable[str], column: str) -> int:
        if column not in LINK_COLUMNS:
            raise StoreError(f"not a router link column: {column}")
        ids = list(router_ids)
        if not ids:
            return 0
        query = sql.SQL("UPDATE routers SET {col} = NULL, updated_at = NOW() WHERE id = ANY(%s)").format(
            col=sql.Identifier(ROUTER_COLUMN_NAMES[column])
        )
        return self._execute("clear router links", query, (ids,))

    def set_dim_db_status(self, ids: Iterable[str], status: DimDbStatus) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        return self._execute(
            "set dim-db status",
            "UPDATE dimdb_list SET status = %s, updated_at = NOW() WHERE id = ANY(%s)",
            (status.value, id_list),
        )

    def set_sim_card_status(self, ids: Iterable[str], status: SimCardStatus) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        return self._execute(
            "set sim card status",
            "UPDATE sim_cards SET status = %s, updated_at = NOW() WHERE id = ANY(%s)",
            (status.value, id_list),
        )
