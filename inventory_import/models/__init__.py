"""Domain models for the router inventory importer.

Canonical fields / records, row level issues, inventory entities, run results
and configuration dataclasses. Everything here is plain data; behavior lives in
inventory_import.services.
"""

from .column_match import ColumnMatch
from .config_models import DatabaseConfig, ImportConfig, ImportSettings
from .error_record import ErrorRecord
from .fields import CanonicalField, CanonicalRecord
from .inventory import DimDb, DimDbStatus, Router, RvmUnit, SimCard, SimCardStatus
from .processing_result import BatchStatsAccumulator, ImportPreview, ImportReport, MergeResult
from .row_data import RawRow, RowIssue, ValidationOutcome

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "ImportSettings",
    # Canonical fields
    "CanonicalField",
    "CanonicalRecord",
    "ColumnMatch",
    # Row models
    "RawRow",
    "RowIssue",
    "ValidationOutcome",
    # Inventory entities
    "Router",
    "RvmUnit",
    "SimCard",
    "SimCardStatus",
    "DimDb",
    "DimDbStatus",
    # Processing models
    "MergeResult",
    "ImportReport",
    "ImportPreview",
    "BatchStatsAccumulator",
    "ErrorRecord",
]
