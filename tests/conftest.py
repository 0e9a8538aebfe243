# Shared pytest fixtures
from __future__ import annotations

import importlib.util
import tempfile
from collections.abc import Callable
from pathlib import Path
from types import ModuleType

import pandas as pd
import pytest

from inventory_import.db.memory import InMemoryInventoryStore
from inventory_import.logging.init import reset_logging

SAMPLE_GENERATOR_PATH = Path(__file__).resolve().parents[1] / "scripts" / "gen_sample_inventory.py"
INVENTORY_HEADERS = ["Box No Prefix", "Kutu No", "Serial Number", "IMEI", "MAC Address", "RVM ID"]


@pytest.fixture(autouse=True)
def _fresh_logging():
    # setup_logging() binds sys.stdout at first use; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
sheet_name: null
null_sentinels: ["N/A", "-"]
import:
  batch_size: 2
  error_cap: 20
  header_min_filled_cells: 3
  check_imei_checksum: false
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: inventory
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_workbook(path: Path, rows: list[list[object]], sheet_name: str = "Sheet1") -> Path:
    """Write ``rows`` verbatim (no pandas header / index) to a one-sheet workbook."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def make_workbook(tmp_path: Path) -> Callable[..., Path]:
    def _make(rows: list[list[object]], name: str = "routers.xlsx", sheet_name: str = "Sheet1") -> Path:
        return write_workbook(tmp_path / name, rows, sheet_name)
    return _make


@pytest.fixture()
def inventory_rows() -> list[list[object]]:
    """Three valid routers on three distinct RVM units."""
    return [
        INVENTORY_HEADERS,
        ["RUT901", "00001", "6006566691", "868291076903737", "20:97:27:80:a7:e8", "kpl0402511010"],
        ["RUT901", "00002", "6006566692", "868291076903745", "20:97:27:80:a7:e9", "kpl0402511011"],
        ["RUT901", "00003", "6006566693", "868291076903752", "20:97:27:80:a7:ea", "kpl0402511012"],
    ]


@pytest.fixture()
def store() -> InMemoryInventoryStore:
    return InMemoryInventoryStore()


@pytest.fixture()
def write_data_workbook(temp_workdir: Path) -> Callable[..., Path]:
    """Write a workbook into ``data/`` (the configured source_directory)."""
    def _write(rows: list[list[object]], name: str = "routers.xlsx") -> Path:
        return write_workbook(temp_workdir / "data" / name, rows)
    return _write


@pytest.fixture()
def mock_mode(monkeypatch) -> None:
    # CLI: InMemoryInventoryStore instead of a PostgreSQL connection
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


@pytest.fixture(scope="session")
def sample_generator() -> ModuleType:
    """scripts/gen_sample_inventory.py loaded as a module (scripts/ is not a package)."""
    spec = importlib.util.spec_from_file_location("gen_sample_inventory", SAMPLE_GENERATOR_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
