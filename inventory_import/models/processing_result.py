from __future__ import annotations

import statistics
from collections.abc import Callable
from dataclasses import dataclass, field

from .column_match import ColumnMatch
from .fields import CanonicalRecord
from .row_data import RowIssue

"""Result models for one import run.

MergeResult is the mutable aggregate filled while rows are validated and merged;
ImportReport is what the orchestrator hands to the CLI / HTTP layer;
ImportPreview is the dry-run counterpart that never writes.
"""

__all__ = [
    "DEFAULT_ERROR_CAP",
    "MergeResult",
    "ImportReport",
    "ImportPreview",
    "BatchStatsAccumulator",
]

# レスポンスサイズ上限 (超過分は件数のみ計上)
DEFAULT_ERROR_CAP = 20


@dataclass
class MergeResult:
    """Run-level counters plus capped error / warning lists.

    error_count and warning_count always hold the true totals; the lists keep
    only the first ``error_cap`` entries each.
    """
    error_cap: int = DEFAULT_ERROR_CAP
    new_count: int = 0
    updated_count: int = 0
    error_count: int = 0
    warning_count: int = 0
    errors: list[RowIssue] = field(default_factory=list)
    warnings: list[RowIssue] = field(default_factory=list)
    created_rvm_units: list[str] = field(default_factory=list)
    created_sim_cards: list[str] = field(default_factory=list)
    # every recorded error, including those beyond the cap (error log)
    on_error: Callable[[RowIssue], None] | None = field(default=None, repr=False, compare=False)

    @property
    def success(self) -> bool:
        return self.error_count == 0

    def record_error(self, issue: RowIssue) -> None:
        self.error_count += 1
        if self.on_error is not None:
            self.on_error(issue)
        if len(self.errors) < self.error_cap:
            self.errors.append(issue)

    def record_warning(self, issue: RowIssue) -> None:
        self.warning_count += 1
        if len(self.warnings) < self.error_cap:
            self.warnings.append(issue)


@dataclass(frozen=True)
class ImportReport:
    """Consumer-facing outcome of one spreadsheet import."""
    total_rows: int
    new_count: int
    updated_count: int
    error_count: int
    warning_count: int
    errors: list[RowIssue]
    warnings: list[RowIssue]
    created_rvm_units: list[str]
    created_sim_cards: list[str]
    column_mappings: list[ColumnMatch]
    sheet_name: str
    header_row: int  # 1-based row the headers were read from
    elapsed_seconds: float = 0.0
    file_name: str | None = None
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.error_count == 0

    @classmethod
    def from_merge(
        cls,
        result: MergeResult,
        *,
        total_rows: int,
        column_mappings: list[ColumnMatch],
        sheet_name: str,
        header_row: int,
        elapsed_seconds: float = 0.0,
        file_name: str | None = None,
        batch_stats: tuple[int, float, float] = (0, 0.0, 0.0),
    ) -> ImportReport:
        total_batches, avg_batch, p95_batch = batch_stats
        return cls(
            total_rows=total_rows,
            new_count=result.new_count,
            updated_count=result.updated_count,
            error_count=result.error_count,
            warning_count=result.warning_count,
            errors=sorted(result.errors, key=lambda e: e.row),
            warnings=sorted(result.warnings, key=lambda w: w.row),
            created_rvm_units=list(result.created_rvm_units),
            created_sim_cards=list(result.created_sim_cards),
            column_mappings=list(column_mappings),
            sheet_name=sheet_name,
            header_row=header_row,
            elapsed_seconds=elapsed_seconds,
            file_name=file_name,
            total_batches=total_batches,
            avg_batch_seconds=avg_batch,
            p95_batch_seconds=p95_batch,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "totalRows": self.total_rows,
            "newCount": self.new_count,
            "updatedCount": self.updated_count,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "createdRvmUnits": list(self.created_rvm_units),
            "createdSimCards": list(self.created_sim_cards),
            "columnMappings": [m.to_dict() for m in self.column_mappings],
            "sheetName": self.sheet_name,
            "headerRow": self.header_row,
        }


@dataclass(frozen=True)
class ImportPreview:
    """Dry-run classification of a sheet against the current inventory."""
    total_rows: int
    new_records: int
    existing_records: int
    duplicates: int
    errors: list[RowIssue]
    column_mappings: list[ColumnMatch]
    sample_data: list[CanonicalRecord]
    header_row: int

    def to_dict(self) -> dict[str, object]:
        return {
            "totalRows": self.total_rows,
            "newRecords": self.new_records,
            "existingRecords": self.existing_records,
            "duplicates": self.duplicates,
            "errors": [e.to_dict() for e in self.errors],
            "columnMappings": [m.to_dict() for m in self.column_mappings],
            "sampleData": [r.to_dict() for r in self.sample_data],
            "headerRow": self.header_row,
        }


class BatchStatsAccumulator:
    """Accumulates per-batch merge timings.

    Collects individual batch timing data and calculates summary statistics.
    """

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 20 分位の 19 番目 = p95
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method="inclusive"
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
