from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.memory import InMemoryInventoryStore
from ..db.postgres import PostgresInventoryStore
from ..db.store import InventoryStore, StoreError
from ..excel.reader import SheetHeaderError, SpreadsheetDecodeError, decode_spreadsheet
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import setup_logging
from ..models.config_models import ImportConfig
from ..services.consistency import check_consistency, fix_consistency
from ..services.orchestrator import Actor, ProcessingError, classify_sheet, process_all, scan_excel_files
from ..services.preview import build_preview

"""CLI entrypoint.

    python -m inventory_import.cli [FILE.xlsx ...] [--config PATH] [--preview]
                                   [--inspect-data] [--check-consistency]
                                   [--fix-consistency [--dry-run]] [--user-id ID]
                                   [--json] [--debug]

Without FILE arguments every .xlsx in ``source_directory`` is imported.

Exit codes:
- 0: every file imported without row errors (or nothing to do)
- 2: row errors in at least one file, or a file could not be read
- 1: fatal (config, missing directory, database connection)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_SAMPLE_ROWS = 3


def _resolve_dsn(cfg: ImportConfig) -> str:
    """接続情報の解決優先順位:
        1. `.env` で読み込まれた環境変数 (main() 冒頭で上書きロード済み)
           - DATABASE_URL / PGDSN があれば DSN 全体をそのまま使用
           - 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        2. config/import.yml の database セクション (不足分のフォールバック)
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _open_store(cfg: ImportConfig) -> Iterator[InventoryStore]:  # pragma: no cover (thin wrapper)
    """Yield the inventory store for this invocation.

    DISABLE_DB_CONNECT=1 -> InMemoryInventoryStore (nothing persisted).
    Otherwise a psycopg2 connection in autocommit mode: each statement commits
    on its own, rows merged before a failure stay in the database.
    """
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logging.getLogger(__name__).debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryInventoryStore()
        return

    conn = psycopg2.connect(_resolve_dsn(cfg))
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield PostgresInventoryStore(cur)
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="inventory-import",
        description="Router inventory spreadsheet importer",
    )
    p.add_argument("files", nargs="*", type=Path, help="Spreadsheets to import (default: scan source_directory)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print detected headers & first rows then exit")
    p.add_argument("--preview", action="store_true", help="Dry run: classify rows as new / existing / duplicate")
    p.add_argument("--check-consistency", action="store_true", help="Report inventory inconsistencies")
    p.add_argument("--fix-consistency", action="store_true", help="Repair inventory inconsistencies")
    p.add_argument("--dry-run", action="store_true", help="With --fix-consistency: report only")
    p.add_argument("--user-id", help="User recorded in the activity log")
    p.add_argument("--json", action="store_true", help="Print results as JSON")
    return p.parse_args(argv)


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _inspect_data(files: list[Path], cfg: ImportConfig) -> int:
    settings = cfg.settings
    for f in files:
        print(f"FILE: {f.name}")
        try:
            sheet = decode_spreadsheet(
                f,
                sheet_name=settings.sheet_name,
                min_filled=settings.header_min_filled_cells,
                null_sentinels=settings.null_sentinels,
            )
        except (SpreadsheetDecodeError, SheetHeaderError) as e:
            print(f"  read_error: {e}")
            continue
        print(f"  SHEET: {sheet.sheet_name} header_row={sheet.header_row} rows={len(sheet.rows)}")
        for m in classify_sheet(sheet):
            target = m.system_field.value if m.system_field is not None else "-"
            print(f"    {m.excel_column!r} -> {target} ({m.confidence:.2f})")
        for row in sheet.rows[:INSPECT_SAMPLE_ROWS]:
            print(f"    row {row.row_number}: {row.values}")
    return EXIT_SUCCESS_ALL


def _preview(files: list[Path], cfg: ImportConfig, store: InventoryStore, as_json: bool) -> int:
    logger = logging.getLogger(__name__)
    settings = cfg.settings
    payload = []
    exit_code = EXIT_SUCCESS_ALL
    for f in files:
        try:
            sheet = decode_spreadsheet(
                f,
                sheet_name=settings.sheet_name,
                min_filled=settings.header_min_filled_cells,
                null_sentinels=settings.null_sentinels,
            )
        except (SpreadsheetDecodeError, SheetHeaderError) as e:
            logger.error("%s: %s", f.name, e)
            payload.append({"file": f.name, "error": str(e)})
            exit_code = EXIT_PARTIAL_FAILURE
            continue
        preview = build_preview(sheet, store, settings=settings)
        payload.append({"file": f.name, "preview": preview.to_dict()})
        logger.info(
            "preview %s: rows=%d new=%d existing=%d duplicates=%d errors=%d",
            f.name, preview.total_rows, preview.new_records, preview.existing_records,
            preview.duplicates, len(preview.errors),
        )
        if preview.errors:
            exit_code = EXIT_PARTIAL_FAILURE
    if as_json:
        _print_json(payload)
    return exit_code


def _consistency(args: argparse.Namespace, store: InventoryStore) -> int:
    logger = logging.getLogger(__name__)
    if args.fix_consistency:
        report = fix_consistency(store, dry_run=args.dry_run, user_id=args.user_id)
    else:
        report = check_consistency(store)
    if args.json:
        _print_json(report.to_dict())
    if report.is_consistent:
        logger.info("inventory is consistent")
        return EXIT_SUCCESS_ALL
    if report.fixed:
        return EXIT_SUCCESS_ALL
    logger.warning("inventory has %d consistency issues", report.issue_count)
    return EXIT_PARTIAL_FAILURE


def _collect_files(args: argparse.Namespace, cfg: ImportConfig) -> list[Path]:
    if args.files:
        return list(args.files)
    directory = Path(cfg.source_directory)
    logging.getLogger(__name__).info(f"Processing files from: {directory}")
    return scan_excel_files(directory)


def _flush_error_log(error_log: ErrorLogBuffer, logger: logging.Logger) -> None:
    counts = error_log.counts_by_type()
    log_path = error_log.flush()
    if log_path is not None:
        breakdown = " ".join(f"{k}={v}" for k, v in sorted(counts.items()))
        logger.info(f"error log: {log_path} ({breakdown})")


def main(argv: list[str] | None = None) -> int:
    # Initialize logging system with labeled prefixes
    logger = setup_logging()

    # NOTE: 空リスト [] が与えられた場合 (テストで main([]) 呼び出し) に
    #       pytest の引数が混入しないよう None のときのみ sys.argv を読む。
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    needs_files = not (args.check_consistency or args.fix_consistency)
    files: list[Path] = []
    if needs_files:
        try:
            files = _collect_files(args, cfg)
        except ProcessingError as e:
            logger.error(f"{e}")
            return EXIT_FATAL
        if not files:
            logger.info("no .xlsx files to import")
            return EXIT_SUCCESS_ALL

    if args.inspect_data:
        return _inspect_data(files, cfg)

    error_log = ErrorLogBuffer()
    try:
        with _open_store(cfg) as store:
            if not needs_files:
                return _consistency(args, store)
            if args.preview:
                return _preview(files, cfg, store, args.json)

            actor = Actor(user_id=args.user_id) if args.user_id else None
            outcomes = process_all(files, store, settings=cfg.settings, actor=actor, error_log=error_log)
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"datastore: {e}")
        return EXIT_FATAL
    finally:
        # 途中で DB が落ちても、それまでの行エラーはファイルに残す
        _flush_error_log(error_log, logger)

    if args.json:
        _print_json([
            {"file": o.path.name, "report": o.report.to_dict()}
            if o.report is not None
            else {"file": o.path.name, "error": o.error}
            for o in outcomes
        ])

    if any(o.failed or not o.report.success for o in outcomes):
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
