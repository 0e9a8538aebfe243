from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..db.store import InventoryStore, StoreError
from ..excel.reader import DecodedSheet, SheetHeaderError, SpreadsheetDecodeError, decode_spreadsheet
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..logging.init import log_summary
from ..models.column_match import ColumnMatch
from ..models.config_models import ImportSettings
from ..models.fields import CanonicalRecord
from ..models.processing_result import ImportReport, MergeResult
from ..models.row_data import RowIssue
from .field_cleaner import IDENTITY_FIELD_TAG, validate_row
from .header_classifier import detect_columns
from .merge import GENERAL_FIELD_TAG, PROGRESS_START, MergeEngine
from .progress import ProgressCallback, ProgressReporter, ProgressTracker, is_tty_enabled
from .row_mapper import map_row
from .summary import render_summary_line

logger = logging.getLogger(__name__)

"""Import orchestration.

run_import() sequences one spreadsheet through the pipeline:

    decode -> classify headers -> map + validate rows (0-50 %)
           -> merge (50-95 %) -> activity log -> report (100 %)

Only whole-run failures (unreadable workbook, no sheets, empty sheet) raise
ProcessingError. Row problems end up in the report; every row error is also
appended to the ErrorLogBuffer when one is given.

process_all() is the CLI counterpart for several files: one report per file,
a failed file does not stop the remaining ones.
"""

__all__ = [
    "ProcessingError",
    "Actor",
    "FileOutcome",
    "FILE_LEVEL_FIELD",
    "scan_excel_files",
    "classify_sheet",
    "run_import",
    "process_all",
]

FILE_LEVEL_FIELD = "<FILE_LEVEL>"
ACTIVITY_ACTION = "IMPORT"
ACTIVITY_ENTITY = "ROUTER"


class ProcessingError(Exception):
    """Whole-run failure: the spreadsheet itself could not be processed."""


@dataclass(frozen=True)
class Actor:
    """Authenticated user the import runs on behalf of."""
    user_id: str
    role: str = "USER"


@dataclass
class FileOutcome:
    path: Path
    report: ImportReport | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.report is None


def scan_excel_files(directory: Path) -> list[Path]:
    """Scan directory for .xlsx files (non-recursive, sorted by name).

    Raises:
        ProcessingError: If directory doesn't exist or can't be read
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    try:
        # Excel の一時ファイル (~$xxx.xlsx) は除外
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix == ".xlsx" and not p.name.startswith("~$")
        )
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def classify_sheet(sheet: DecodedSheet) -> list[ColumnMatch]:
    matches = detect_columns(sheet.columns)
    unmapped = [m.excel_column for m in matches if m.system_field is None]
    if unmapped:
        logger.debug("sheet %s: unmapped columns %s", sheet.sheet_name, unmapped)
    return matches


def _decode(source: bytes | Path | DecodedSheet, settings: ImportSettings) -> DecodedSheet:
    if isinstance(source, DecodedSheet):
        return source
    try:
        return decode_spreadsheet(
            source,
            sheet_name=settings.sheet_name,
            min_filled=settings.header_min_filled_cells,
            null_sentinels=settings.null_sentinels,
        )
    except (SpreadsheetDecodeError, SheetHeaderError) as e:
        raise ProcessingError(str(e)) from e


def _merge_error_type(issue: RowIssue) -> str:
    if issue.field == GENERAL_FIELD_TAG:
        return "MERGE_ERROR"
    if issue.field == IDENTITY_FIELD_TAG:
        return "CREATE_REQUIRES_IDENTITY"
    return "VALIDATION_ERROR"


def _error_sink(
    error_log: ErrorLogBuffer,
    file_name: str,
    error_type_of: Callable[[RowIssue], str],
) -> Callable[[RowIssue], None]:
    def _append(issue: RowIssue) -> None:
        error_log.append(ErrorRecord.create(
            file=file_name,
            row=issue.row,
            field=issue.field,
            error_type=error_type_of(issue),
            message=issue.message,
        ))
    return _append


def _validate_rows(
    sheet: DecodedSheet,
    matches: Sequence[ColumnMatch],
    settings: ImportSettings,
    result: MergeResult,
    progress: ProgressReporter,
) -> list[tuple[int, CanonicalRecord]]:
    """Map and validate every data row; invalid rows are recorded and dropped."""
    valid: list[tuple[int, CanonicalRecord]] = []
    total = len(sheet.rows)
    for index, row in enumerate(sheet.rows):
        record = map_row(row, matches)
        outcome = validate_row(record, row.row_number, check_imei_checksum=settings.check_imei_checksum)
        for warning in outcome.warnings:
            result.record_warning(warning)
        if outcome.is_valid:
            valid.append((row.row_number, outcome.cleaned_data))
        else:
            first = outcome.errors[0]
            result.record_error(RowIssue(
                row=row.row_number,
                field=first.field,
                message=", ".join(e.message for e in outcome.errors),
                value=first.value,
            ))
        progress(10 + (index + 1) / total * (PROGRESS_START - 10), f"Validating row {index + 1}/{total}...")
    return valid


def run_import(
    source: bytes | Path | DecodedSheet,
    store: InventoryStore,
    *,
    settings: ImportSettings | None = None,
    on_progress: ProgressCallback | None = None,
    actor: Actor | None = None,
    error_log: ErrorLogBuffer | None = None,
    file_name: str | None = None,
) -> ImportReport:
    """Import one spreadsheet into ``store`` and return the run report.

    Args:
        source: workbook bytes, a path to an .xlsx file, or an already decoded sheet
        store: inventory datastore (Postgres or in-memory)
        settings: import tunables, defaults when omitted
        on_progress: ``(percent, message)`` callback
        actor: user recorded in the activity log; no activity entry without one
        error_log: receives one ErrorRecord per row error (not capped)
        file_name: name used in logs; derived from ``source`` when it is a path

    Raises:
        ProcessingError: the workbook cannot be decoded or has no usable sheet
    """
    settings = settings or ImportSettings()
    if file_name is None:
        file_name = source.name if isinstance(source, Path) else "<upload>"
    progress = ProgressReporter(on_progress)
    started = time.perf_counter()

    progress(0, "Reading spreadsheet...")
    try:
        sheet = _decode(source, settings)
    except ProcessingError as e:
        logger.error("%s: %s", file_name, e)
        if error_log is not None:
            error_log.append(ErrorRecord.create(
                file=file_name, row=-1, field=FILE_LEVEL_FIELD, error_type="DECODE_ERROR", message=str(e),
            ))
        raise

    progress(5, "Detecting columns...")
    matches = classify_sheet(sheet)
    logger.info(
        "%s: sheet=%s header_row=%d rows=%d mapped_columns=%d/%d",
        file_name, sheet.sheet_name, sheet.header_row, len(sheet.rows),
        sum(1 for m in matches if m.system_field is not None), len(matches),
    )
    progress(10, "Validating rows...")

    result = MergeResult(error_cap=settings.error_cap)
    if error_log is not None:
        result.on_error = _error_sink(error_log, file_name, lambda issue: "VALIDATION_ERROR")
    valid_rows = _validate_rows(sheet, matches, settings, result, progress)

    progress(PROGRESS_START, "Merging rows...")
    if error_log is not None:
        result.on_error = _error_sink(error_log, file_name, _merge_error_type)
    engine = MergeEngine(store, batch_size=settings.batch_size, error_cap=settings.error_cap)
    engine.merge(valid_rows, on_progress=progress, result=result)
    result.on_error = None

    if actor is not None:
        try:
            store.record_activity(
                ACTIVITY_ACTION,
                ACTIVITY_ENTITY,
                actor.user_id,
                {
                    "fileName": file_name,
                    "totalRows": len(sheet.rows),
                    "newCount": result.new_count,
                    "updatedCount": result.updated_count,
                    "errorCount": result.error_count,
                    "createdRvmUnits": len(result.created_rvm_units),
                    "createdSimCards": len(result.created_sim_cards),
                },
            )
        except StoreError as e:
            # 取り込み自体は完了しているので警告のみ
            logger.warning("%s: activity log write failed: %s", file_name, e)

    report = ImportReport.from_merge(
        result,
        total_rows=len(sheet.rows),
        column_mappings=matches,
        sheet_name=sheet.sheet_name,
        header_row=sheet.header_row,
        elapsed_seconds=time.perf_counter() - started,
        file_name=file_name,
        batch_stats=engine.batch_stats.get_stats(),
    )
    progress.complete()
    return report


def process_all(
    files: Sequence[Path],
    store: InventoryStore,
    *,
    settings: ImportSettings,
    actor: Actor | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> list[FileOutcome]:
    """Import several spreadsheets one after the other (CLI)."""
    outcomes: list[FileOutcome] = []
    for path in files:
        tracker = ProgressTracker(description=path.name) if is_tty_enabled() else None
        try:
            report = run_import(
                path,
                store,
                settings=settings,
                on_progress=tracker,
                actor=actor,
                error_log=error_log,
                file_name=path.name,
            )
        except ProcessingError as e:
            outcomes.append(FileOutcome(path=path, error=str(e)))
            continue
        finally:
            if tracker is not None:
                tracker.close()

        for issue in report.errors:
            logger.warning("%s row %d [%s]: %s", path.name, issue.row, issue.field, issue.message)
        if report.error_count > len(report.errors):
            logger.warning("%s: %d more row errors not shown", path.name, report.error_count - len(report.errors))
        # log_summary 側で "SUMMARY " ラベルが付くので本文のみ渡す
        log_summary(render_summary_line(report).removeprefix("SUMMARY "))
        outcomes.append(FileOutcome(path=path, report=report))
    return outcomes
