from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..db.connection import db_connection
from ..db.schema_shape import SchemaShapeResolver
from ..excel.reader import BadInput
from ..logging.init import log_summary, setup_logging
from ..models.import_types import ImportMode, ImportType
from ..services.orchestrator import process_import
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line

"""CLI entrypoint.

    erp-import {customers,suppliers,items} FILE --branch-id N
               [--mode preview|import] [--config PATH] [--json] [--debug]

Exit codes:
    0 no row failed
    2 at least one row failed (partial failure)
    1 fatal (bad input, configuration, database connection)
"""

__all__ = [
    "EXIT_FATAL",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_SUCCESS_ALL",
    "main",
]

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="erp-import", description="Spreadsheet -> ERP bulk importer")
    p.add_argument("import_type", choices=[t.value for t in ImportType], help="Entity kind to import")
    p.add_argument("file", type=Path, help="Spreadsheet to import (.xlsx / .csv)")
    p.add_argument("--branch-id", type=int, required=True, help="Branch every row is imported into")
    p.add_argument(
        "--mode",
        choices=[m.value for m in ImportMode],
        default=ImportMode.PREVIEW.value,
        help="preview validates only; import writes valid rows (default: preview)",
    )
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: config/import.yml)")
    p.add_argument("--json", action="store_true", help="Print the summary as JSON")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はテストからの明示指定)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(logging.DEBUG)
        logger.debug("debug mode enabled")

    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if not args.file.is_file():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL
    data = args.file.read_bytes()

    resolver = SchemaShapeResolver(schema=cfg.schema)
    try:
        with ProgressTracker() as progress, db_connection(cfg) as conn:
            summary = process_import(
                args.import_type,
                args.mode,
                args.branch_id,
                data,
                args.file.name,
                connection=conn,
                resolver=resolver,
                config=cfg,
                progress=progress,
            )
    except BadInput as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {str(e).strip()}")
        return EXIT_FATAL

    if args.json:
        print(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2))

    # log_summary 側で "SUMMARY " ラベルが付くため本文のみ渡す
    log_summary(render_summary_line(summary).removeprefix("SUMMARY "))

    if summary.failed_count > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
