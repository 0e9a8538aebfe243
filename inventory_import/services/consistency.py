from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from ..db.store import InventoryStore
from ..models.inventory import DimDbStatus, SimCardStatus

"""Inventory consistency check / repair.

Detects
- routers whose dim_db_id / rvm_unit_id / sim_card_id point to a missing row
- DIM-DB codes marked ASSIGNED without a router, or AVAILABLE with one
- SIM cards with the same two status mismatches

fix_consistency() clears the orphaned foreign keys and flips the mismatched
statuses. The import itself never changes DIM-DB or SIM statuses of existing
rows; this is where they are brought back in line.
"""

__all__ = [
    "ConsistencyReport",
    "check_consistency",
    "fix_consistency",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Finding:
    """Ids to repair plus the human readable labels reported for them."""
    ids: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConsistencyReport:
    orphaned_dim_db: _Finding = field(default_factory=_Finding)
    orphaned_rvm_unit: _Finding = field(default_factory=_Finding)
    orphaned_sim_card: _Finding = field(default_factory=_Finding)
    dim_db_assigned_without_router: _Finding = field(default_factory=_Finding)
    dim_db_available_with_router: _Finding = field(default_factory=_Finding)
    sim_assigned_without_router: _Finding = field(default_factory=_Finding)
    sim_available_with_router: _Finding = field(default_factory=_Finding)
    fixed: bool = False

    @property
    def issue_count(self) -> int:
        return sum(
            len(f.ids)
            for f in (
                self.orphaned_dim_db,
                self.orphaned_rvm_unit,
                self.orphaned_sim_card,
                self.dim_db_assigned_without_router,
                self.dim_db_available_with_router,
                self.sim_assigned_without_router,
                self.sim_available_with_router,
            )
        )

    @property
    def is_consistent(self) -> bool:
        return self.issue_count == 0

    def to_dict(self) -> dict[str, object]:
        return {
            "orphanedDimDbIds": len(self.orphaned_dim_db.ids),
            "orphanedRvmUnitIds": len(self.orphaned_rvm_unit.ids),
            "orphanedSimCardIds": len(self.orphaned_sim_card.ids),
            "assignedButNoRouter": len(self.dim_db_assigned_without_router.ids),
            "availableButHasRouter": len(self.dim_db_available_with_router.ids),
            "simAssignedButNoRouter": len(self.sim_assigned_without_router.ids),
            "simAvailableButHasRouter": len(self.sim_available_with_router.ids),
            "fixed": self.fixed,
            "details": {
                "orphanedDimDbRouters": list(self.orphaned_dim_db.labels),
                "orphanedRvmRouters": list(self.orphaned_rvm_unit.labels),
                "orphanedSimCardRouters": list(self.orphaned_sim_card.labels),
                "dimDbStatusFixed": [
                    *(f"{c} (ASSIGNED->AVAILABLE)" for c in self.dim_db_assigned_without_router.labels),
                    *(f"{c} (AVAILABLE->ASSIGNED)" for c in self.dim_db_available_with_router.labels),
                ],
                "simCardStatusFixed": [
                    *(f"{p} (ASSIGNED->AVAILABLE)" for p in self.sim_assigned_without_router.labels),
                    *(f"{p} (AVAILABLE->ASSIGNED)" for p in self.sim_available_with_router.labels),
                ],
            },
        }


def _finding(pairs: list[tuple[str, str]]) -> _Finding:
    return _Finding(ids=tuple(p[0] for p in pairs), labels=tuple(p[1] for p in pairs))


def check_consistency(store: InventoryStore) -> ConsistencyReport:
    links = store.list_router_links()
    rvm_ids = store.list_rvm_unit_ids()
    dim_dbs = store.list_dim_dbs()
    sim_cards = store.list_sim_cards()
    dim_ids = {d.id for d in dim_dbs}
    sim_ids = {s.id for s in sim_cards}

    linked_dims = {r.dim_db_id for r in links if r.dim_db_id}
    linked_sims = {r.sim_card_id for r in links if r.sim_card_id}

    return ConsistencyReport(
        orphaned_dim_db=_finding(
            [(r.id, r.box_no) for r in links if r.dim_db_id and r.dim_db_id not in dim_ids]
        ),
        orphaned_rvm_unit=_finding(
            [(r.id, r.box_no) for r in links if r.rvm_unit_id and r.rvm_unit_id not in rvm_ids]
        ),
        orphaned_sim_card=_finding(
            [(r.id, r.box_no) for r in links if r.sim_card_id and r.sim_card_id not in sim_ids]
        ),
        dim_db_assigned_without_router=_finding([
            (d.id, d.dim_db_code) for d in dim_dbs
            if d.status is DimDbStatus.ASSIGNED and d.id not in linked_dims
        ]),
        dim_db_available_with_router=_finding([
            (d.id, d.dim_db_code) for d in dim_dbs
            if d.status is DimDbStatus.AVAILABLE and d.id in linked_dims
        ]),
        sim_assigned_without_router=_finding([
            (s.id, s.phone_number) for s in sim_cards
            if s.status is SimCardStatus.ASSIGNED and s.id not in linked_sims
        ]),
        sim_available_with_router=_finding([
            (s.id, s.phone_number) for s in sim_cards
            if s.status is SimCardStatus.AVAILABLE and s.id in linked_sims
        ]),
    )


def fix_consistency(
    store: InventoryStore,
    dry_run: bool = False,
    *,
    user_id: str | None = None,
) -> ConsistencyReport:
    """Repair everything check_consistency() finds.

    With ``dry_run`` nothing is written and the unfixed report is returned. A
    FIX_CONSISTENCY / SYSTEM activity entry is recorded when ``user_id`` is given.
    """
    report = check_consistency(store)
    if dry_run:
        return report

    store.clear_router_links(report.orphaned_dim_db.ids, "dim_db_id")
    store.clear_router_links(report.orphaned_rvm_unit.ids, "rvm_unit_id")
    store.clear_router_links(report.orphaned_sim_card.ids, "sim_card_id")
    store.set_dim_db_status(report.dim_db_assigned_without_router.ids, DimDbStatus.AVAILABLE)
    store.set_dim_db_status(report.dim_db_available_with_router.ids, DimDbStatus.ASSIGNED)
    store.set_sim_card_status(report.sim_assigned_without_router.ids, SimCardStatus.AVAILABLE)
    store.set_sim_card_status(report.sim_available_with_router.ids, SimCardStatus.ASSIGNED)

    fixed = replace(report, fixed=True)
    logger.info("consistency repair: %d issues fixed", fixed.issue_count)
    if user_id is not None:
        store.record_activity("FIX_CONSISTENCY", "SYSTEM", user_id, fixed.to_dict())
    return fixed
