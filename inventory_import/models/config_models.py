from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the router inventory importer.

The YAML loader in inventory_import/config/loader.py builds these after schema
validation; everything downstream only sees the typed objects.
"""

__all__ = [
    "DatabaseConfig",
    "ImportSettings",
    "ImportConfig",
]


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    """Tunables of a single import run."""
    batch_size: int = 50  # merge progress / timing granularity, no effect on outcome
    error_cap: int = 20  # errors / warnings kept in the report
    header_min_filled_cells: int = 3  # first row with fewer filled cells is a title row
    check_imei_checksum: bool = False  # opt-in Luhn check as a blocking error
    sheet_name: str | None = None  # None -> first sheet
    null_sentinels: frozenset[str] = field(default_factory=frozenset)  # upper-cased


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for the importer."""
    source_directory: str
    settings: ImportSettings
    database: DatabaseConfig
