from __future__ import annotations

import math
import time

import pytest

from inventory_import.db.memory import InMemoryInventoryStore
from inventory_import.models.config_models import ImportSettings
from inventory_import.services.orchestrator import run_import

"""Import throughput smoke test against the in-memory store.

Generous budget: it only catches accidental per-row datastore round trips or
quadratic work in the pipeline itself, not driver performance.
"""

ROWS = 1_000
BUDGET_SECONDS = 60.0


@pytest.fixture(scope="module")
def big_workbook(sample_generator, tmp_path_factory):
    path = tmp_path_factory.mktemp("perf") / "routers.xlsx"
    sample_generator.create_inventory_workbook(path, ROWS, rvm_units=50)
    return path


def test_import_throughput_budget(big_workbook):
    store = InMemoryInventoryStore()
    started = time.perf_counter()
    report = run_import(big_workbook, store, settings=ImportSettings(batch_size=100))
    elapsed = time.perf_counter() - started

    assert report.success
    assert report.new_count == ROWS
    assert len(report.created_rvm_units) == 50
    assert len(report.created_sim_cards) == ROWS
    assert elapsed < BUDGET_SECONDS, f"import too slow: {elapsed:.2f}s for {ROWS} rows"


@pytest.mark.parametrize("batch_size", [1, 37, 100, 5_000])
def test_batch_size_does_not_change_outcome(big_workbook, batch_size):
    store = InMemoryInventoryStore()
    report = run_import(big_workbook, store, settings=ImportSettings(batch_size=batch_size))
    assert (report.new_count, report.updated_count, report.error_count) == (ROWS, 0, 0)
    assert report.total_batches == math.ceil(ROWS / batch_size)
    assert len(store.routers) == ROWS
