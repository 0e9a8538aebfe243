from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..db.store import DuplicateKeyError, InventoryStore
from ..models.fields import CanonicalField, CanonicalRecord
from ..models.inventory import SimCardStatus
from ..models.processing_result import DEFAULT_ERROR_CAP, BatchStatsAccumulator, MergeResult
from ..models.row_data import RowIssue
from .field_cleaner import IDENTITY_FIELD_TAG

"""Merge engine: reconcile validated CanonicalRecords with the stored inventory.

Per row, in input order:
1. resolve rvmId / simCardPhone to RvmUnit / SimCard ids (find-or-create)
2. look the router up by serial number, then by IMEI
3. update path: write only the fields present in the row (dim_db_id is never written)
4. create path: serial number AND IMEI required, otherwise a row error

A failure while merging one row becomes a row error tagged ``general``; the run
goes on with the next row. Batching only drives progress reporting and timing.
"""

__all__ = [
    "PROGRESS_START",
    "PROGRESS_END",
    "GENERAL_FIELD_TAG",
    "InvalidPhoneNumberError",
    "RunSnapshot",
    "MergeEngine",
    "normalize_phone_number",
]

logger = logging.getLogger(__name__)

PROGRESS_START = 50.0
PROGRESS_END = 95.0
GENERAL_FIELD_TAG = "general"
CREATE_REQUIRES_IDENTITY_MESSAGE = "Both Serial Number and IMEI are required for new records"

# Router attributes copied straight from the record (rvm/sim/dim handled separately)
_ROUTER_VALUE_FIELDS: tuple[CanonicalField, ...] = (
    CanonicalField.BOX_NO_PREFIX,
    CanonicalField.BOX_NO,
    CanonicalField.SERIAL_NUMBER,
    CanonicalField.IMEI,
    CanonicalField.MAC_ADDRESS,
    CanonicalField.FIRMWARE,
    CanonicalField.SSID,
    CanonicalField.WIFI_PASSWORD,
    CanonicalField.DEVICE_PASSWORD,
)

_NON_DIGIT = re.compile(r"\D")
PHONE_NUMBER_LENGTH = 10

ProgressCallback = Callable[[float, str], None]


class InvalidPhoneNumberError(ValueError):
    """simCardPhone does not normalize to a 10 digit phone number."""


def normalize_phone_number(raw: str) -> str:
    digits = _NON_DIGIT.sub("", raw)
    if len(digits) != PHONE_NUMBER_LENGTH:
        raise InvalidPhoneNumberError(
            f"Invalid SIM card phone number '{raw}' (expected {PHONE_NUMBER_LENGTH} digits)"
        )
    return digits


@dataclass
class RunSnapshot:
    """Natural key -> id indexes loaded once per run.

    Updated on every create and on updates that change a router's serial or IMEI.
    """
    serials: dict[str, str] = field(default_factory=dict)
    imeis: dict[str, str] = field(default_factory=dict)
    rvm_units: dict[str, str] = field(default_factory=dict)
    sim_cards: dict[str, str] = field(default_factory=dict)
    router_keys: dict[str, tuple[str | None, str | None]] = field(default_factory=dict)

    @classmethod
    def load(cls, store: InventoryStore) -> RunSnapshot:
        snapshot = cls()
        for serial, imei, router_id in store.list_router_keys():
            snapshot.remember_router(router_id, serial, imei)
        snapshot.rvm_units = dict(store.list_rvm_unit_keys())
        snapshot.sim_cards = dict(store.list_sim_card_keys())
        return snapshot

    def find_router(self, serial: str | None, imei: str | None) -> str | None:
        if serial and serial in self.serials:
            return self.serials[serial]
        if imei and imei in self.imeis:
            return self.imeis[imei]
        return None

    def remember_router(self, router_id: str, serial: str | None, imei: str | None) -> None:
        old_serial, old_imei = self.router_keys.get(router_id, (None, None))
        # 更新は渡された項目だけ書き換える
        serial = serial or old_serial
        imei = imei or old_imei
        if old_serial and old_serial != serial and self.serials.get(old_serial) == router_id:
            del self.serials[old_serial]
        if old_imei and old_imei != imei and self.imeis.get(old_imei) == router_id:
            del self.imeis[old_imei]
        if serial:
            self.serials[serial] = router_id
        if imei:
            self.imeis[imei] = router_id
        self.router_keys[router_id] = (serial, imei)


class MergeEngine:
    def __init__(
        self,
        store: InventoryStore,
        *,
        batch_size: int = 50,
        error_cap: int = DEFAULT_ERROR_CAP,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.error_cap = error_cap
        self.batch_stats = BatchStatsAccumulator()

    def merge(
        self,
        rows: Sequence[tuple[int, CanonicalRecord]],
        on_progress: ProgressCallback | None = None,
        result: MergeResult | None = None,
    ) -> MergeResult:
        """Merge ``(row_number, record)`` pairs into the store.

        ``result`` lets the caller pass in an aggregate that already holds the
        validation errors of the run; a fresh one is created otherwise.
        """
        if result is None:
            result = MergeResult(error_cap=self.error_cap)
        snapshot = RunSnapshot.load(self.store)
        logger.debug(
            "snapshot loaded: routers=%d rvm_units=%d sim_cards=%d",
            len(snapshot.serials), len(snapshot.rvm_units), len(snapshot.sim_cards),
        )

        total_batches = (len(rows) + self.batch_size - 1) // self.batch_size
        for batch_index in range(total_batches):
            start = batch_index * self.batch_size
            batch = rows[start:start + self.batch_size]
            if on_progress is not None:
                percent = PROGRESS_START + (batch_index + 1) / total_batches * (PROGRESS_END - PROGRESS_START)
                on_progress(percent, f"Processing batch {batch_index + 1}/{total_batches}...")

            batch_start = time.perf_counter()
            for row_number, record in batch:
                self._merge_row_isolated(snapshot, row_number, record, result)
            self.batch_stats.add_batch_time(time.perf_counter() - batch_start)

        return result

    def _merge_row_isolated(
        self,
        snapshot: RunSnapshot,
        row_number: int,
        record: CanonicalRecord,
        result: MergeResult,
    ) -> None:
        try:
            self._merge_row(snapshot, row_number, record, result)
        except Exception as e:
            logger.warning("row %d: merge failed: %s", row_number, e)
            result.record_error(RowIssue(
                row=row_number,
                field=GENERAL_FIELD_TAG,
                message=str(e) or type(e).__name__,
            ))

    def _merge_row(
        self,
        snapshot: RunSnapshot,
        row_number: int,
        record: CanonicalRecord,
        result: MergeResult,
    ) -> None:
        rvm_unit_id = None
        if record.rvm_id:
            rvm_unit_id = self._resolve_rvm_unit(snapshot, record.rvm_id, result)
        sim_card_id = None
        if record.sim_card_phone:
            sim_card_id = self._resolve_sim_card(snapshot, record.sim_card_phone, result)

        router_id = snapshot.find_router(record.serial_number, record.imei)
        if router_id is not None:
            self._update_router(snapshot, router_id, record, rvm_unit_id, sim_card_id)
            result.updated_count += 1
            return

        if not record.serial_number or not record.imei:
            result.record_error(RowIssue(
                row=row_number,
                field=IDENTITY_FIELD_TAG,
                message=CREATE_REQUIRES_IDENTITY_MESSAGE,
            ))
            return

        values = _router_values(record, rvm_unit_id, sim_card_id)
        values.setdefault("box_no", "")
        values.setdefault("mac_address", "")
        try:
            router_id = self.store.create_router(values)
        except DuplicateKeyError:
            # 別インポートが先に作成済み -> 既存行の更新に切り替える
            router_id = self.store.find_router_by_serial_or_imei(record.serial_number, record.imei)
            if router_id is None:
                raise
            logger.debug("row %d: router created concurrently, updating %s", row_number, router_id)
            self._update_router(snapshot, router_id, record, rvm_unit_id, sim_card_id)
            result.updated_count += 1
            return
        snapshot.remember_router(router_id, record.serial_number, record.imei)
        result.new_count += 1

    def _update_router(
        self,
        snapshot: RunSnapshot,
        router_id: str,
        record: CanonicalRecord,
        rvm_unit_id: str | None,
        sim_card_id: str | None,
    ) -> None:
        values = _router_values(record, rvm_unit_id, sim_card_id)
        if values:
            self.store.update_router(router_id, values)
        snapshot.remember_router(router_id, record.serial_number, record.imei)

    def _resolve_rvm_unit(self, snapshot: RunSnapshot, rvm_id: str, result: MergeResult) -> str:
        known = snapshot.rvm_units.get(rvm_id)
        if known is not None:
            return known
        try:
            unit_id = self.store.create_rvm_unit(rvm_id, f"RVM {rvm_id}")
        except DuplicateKeyError:
            unit_id = self.store.find_rvm_unit_by_rvm_id(rvm_id)
            if unit_id is None:
                raise
        else:
            result.created_rvm_units.append(rvm_id)
        snapshot.rvm_units[rvm_id] = unit_id
        return unit_id

    def _resolve_sim_card(self, snapshot: RunSnapshot, raw_phone: str, result: MergeResult) -> str:
        phone = normalize_phone_number(raw_phone)
        known = snapshot.sim_cards.get(phone)
        if known is not None:
            return known
        try:
            sim_id = self.store.create_sim_card(phone, SimCardStatus.ASSIGNED)
        except DuplicateKeyError:
            sim_id = self.store.find_sim_card_by_phone(phone)
            if sim_id is None:
                raise
        else:
            result.created_sim_cards.append(phone)
        snapshot.sim_cards[phone] = sim_id
        return sim_id


def _router_values(
    record: CanonicalRecord,
    rvm_unit_id: str | None,
    sim_card_id: str | None,
) -> dict[str, Any]:
    """Router attribute -> value for the fields the row actually supplies."""
    values: dict[str, Any] = {}
    for f in _ROUTER_VALUE_FIELDS:
        value = record.get(f)
        if value is not None:
            values[f.attr] = value
    if rvm_unit_id is not None:
        values["rvm_unit_id"] = rvm_unit_id
    if sim_card_id is not None:
        values["sim_card_id"] = sim_card_id
    return values
