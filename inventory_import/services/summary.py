from __future__ import annotations

from ..models.processing_result import ImportReport

"""SUMMARY line rendering.

Format (one line, space separated key=value pairs):
SUMMARY file={name} rows={total} new={n} updated={n} errors={n} warnings={n}
created_rvm={n} created_sim={n} elapsed_sec={elapsed}
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(seconds: float) -> str:
    """Render seconds without scientific notation and without trailing zeros."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(report: ImportReport) -> str:
    """Render the SUMMARY line of one import run.

    Examples:
        >>> from inventory_import.models.processing_result import ImportReport
        >>> report = ImportReport(
        ...     total_rows=3, new_count=2, updated_count=1, error_count=0,
        ...     warning_count=0, errors=[], warnings=[], created_rvm_units=["KPL1"],
        ...     created_sim_cards=[], column_mappings=[], sheet_name="Sheet1",
        ...     header_row=1, elapsed_seconds=2.0, file_name="routers.xlsx",
        ... )
        >>> render_summary_line(report)
        'SUMMARY file=routers.xlsx rows=3 new=2 updated=1 errors=0 warnings=0 created_rvm=1 created_sim=0 elapsed_sec=2'
    """
    name = report.file_name or "-"
    return (
        f"SUMMARY file={name} "
        f"rows={report.total_rows} "
        f"new={report.new_count} "
        f"updated={report.updated_count} "
        f"errors={report.error_count} "
        f"warnings={report.warning_count} "
        f"created_rvm={len(report.created_rvm_units)} "
        f"created_sim={len(report.created_sim_cards)} "
        f"elapsed_sec={format_seconds(report.elapsed_seconds)}"
    )
