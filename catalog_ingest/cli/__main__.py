from __future__ import annotations

import argparse
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
import yaml
from dotenv import load_dotenv

from catalog_ingest.config.loader import ConfigError, default_config, load_config
from catalog_ingest.db.catalog_store import (
    CatalogStoreError,
    load_current_snapshot,
    load_history,
    publish_version,
)
from catalog_ingest.excel.normalize import parse_version_from_filename
from catalog_ingest.excel.reader import UnreadableWorkbookError
from catalog_ingest.logging.error_log import DiagnosticLogBuffer
from catalog_ingest.logging.init import log_summary, setup_logging
from catalog_ingest.models.catalog import ProductType, VersionTarget
from catalog_ingest.models.config_models import IngestConfig
from catalog_ingest.models.processing_result import IngestionResult
from catalog_ingest.services.conflicts import (
    ConflictResolutionError,
    OutstandingConflictsError,
    finalize_records,
    resolve_conflicts,
)
from catalog_ingest.services.pipeline import ingest_file
from catalog_ingest.services.progress import ProgressTracker
from catalog_ingest.services.reconciliation import merge_rows, reconcile
from catalog_ingest.services.summary import render_ingest_summary, render_reconciliation_summary
from catalog_ingest.services.upload import DirectoryBlobStore

"""Operator CLI.

    python -m catalog_ingest.cli FILE... [--config PATH] [--images-out DIR]
                                 [--compare] [--decisions PATH]
                                 [--publish [--week N --year YYYY] [--replace]]
                                 [--debug]

Without --compare/--publish the files are only parsed and matched (dry run);
--images-out dumps the matched, resized images to a directory.

Exit codes:
    0  success
    1  fatal (unreadable file, bad config, database error)
    2  needs review (conflicts without a decision)
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_NEEDS_REVIEW = 2

DRAFT_VERSION_ID = "draft"


@contextmanager
def _db_connection() -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 cursor; commits on success, rolls back on error.

    Connection: DATABASE_URL / PGDSN, else the individual PG* variables.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN")
    if not dsn:
        host = os.getenv("PGHOST", "localhost")
        port = os.getenv("PGPORT", "5432")
        user = os.getenv("PGUSER", "postgres")
        password = os.getenv("PGPASSWORD", "")
        database = os.getenv("PGDATABASE", "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    conn.autocommit = False
    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; .env values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="catalog-ingest",
        description="Parse catalogue workbooks, match embedded images and reconcile against published versions",
    )
    p.add_argument("files", nargs="+", type=Path, help="Workbook files (.xlsx / .xls)")
    p.add_argument("--config", type=Path, help="YAML config file (defaults apply when omitted)")
    p.add_argument("--images-out", type=Path, help="Write matched images below this directory")
    p.add_argument("--compare", action="store_true", help="Reconcile against the active catalogue version")
    p.add_argument("--decisions", type=Path, help="YAML mapping code -> replace|ignore for conflicts")
    p.add_argument("--publish", action="store_true", help="Publish the result as a new active version")
    p.add_argument("--week", type=int, help="Target calendar week (default: from the file name)")
    p.add_argument("--year", type=int, help="Target year (default: from the file name)")
    p.add_argument("--replace", action="store_true", help="Replace an existing version of the same week")
    p.add_argument("--created-by", default=os.getenv("USER"), help="Recorded as the version author")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _load_decisions(path: Path | None, code_length: int) -> dict[str, str]:
    if path is None:
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read decisions file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"decisions file must map code -> decision: {path}")
    return {str(code).zfill(code_length) if str(code).isdigit() else str(code): str(d) for code, d in data.items()}


def _version_target(args: argparse.Namespace, files: list[Path]) -> VersionTarget | None:
    if args.week is not None and args.year is not None:
        return VersionTarget(week=args.week, year=args.year)
    for f in files:
        target = parse_version_from_filename(f.name)
        if target is not None:
            return target
    return None


def _ingest_all(args: argparse.Namespace, cfg: IngestConfig, diagnostics: DiagnosticLogBuffer, logger) -> list[IngestionResult]:
    store = DirectoryBlobStore(args.images_out) if args.images_out else None
    results: list[IngestionResult] = []
    for path in args.files:
        with ProgressTracker(description=f"Images {path.name}") as progress:
            result = ingest_file(
                path,
                cfg,
                blob_store=store,
                progress_callback=progress if store is not None else None,
                diagnostics=diagnostics,
            )
        for entry in result.parse.same_name_different_code:
            positions = ", ".join(f"{code}@{pos.a1}" for code, pos in entry.occurrences)
            logger.warning(f"{path.name}: name '{entry.name}' used by several codes: {positions}")
        results.append(result)
    return results


def _reconcile_and_publish(
    args: argparse.Namespace,
    results: list[IngestionResult],
    decisions: dict[str, str],
    logger,
) -> int:
    by_type: dict[ProductType, list[IngestionResult]] = {}
    for r in results:
        by_type.setdefault(r.parse.product_type, []).append(r)

    target = _version_target(args, args.files) if args.publish else None
    if args.publish and target is None:
        logger.error("publish: no target week; pass --week and --year or use a file name like 'KW07 2026'")
        return EXIT_FATAL

    exit_code = EXIT_SUCCESS
    publishable = []
    with _db_connection() as cur:
        for product_type, group in by_type.items():
            rows = merge_rows(r.rows for r in group)
            current_id, current = load_current_snapshot(cur, product_type)
            history = load_history(cur, product_type)
            result = reconcile(
                rows,
                product_type=product_type,
                current=current,
                history=history,
                new_version_id=DRAFT_VERSION_ID,
                is_first_upload=current_id is None,
            )
            log_summary(render_reconciliation_summary(result.summary))
            for c in result.conflicts:
                logger.warning(f"conflict code={c.code} incoming='{c.incoming_name}' existing='{c.existing_name}'")
            resolution = resolve_conflicts(result.conflicts, decisions, DRAFT_VERSION_ID)
            try:
                publishable.extend(finalize_records(result, resolution))
            except OutstandingConflictsError as e:
                logger.warning(f"{product_type.value}: {e}")
                exit_code = EXIT_NEEDS_REVIEW

        if not args.publish or target is None:
            return exit_code
        if exit_code != EXIT_SUCCESS:
            logger.warning("publish skipped: resolve all conflicts first (--decisions)")
            return exit_code
        for product_type in ProductType:
            if product_type not in by_type:
                publishable.extend(load_current_snapshot(cur, product_type)[1])
        publish_version(
            cur,
            target=target,
            records=publishable,
            created_by=args.created_by,
            replace_existing=args.replace,
        )
    return exit_code


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()
    # None only: an explicit [] must not fall back to sys.argv (pytest flags)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config) if args.config else default_config()
        decisions = _load_decisions(args.decisions, cfg.layout.code_length)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    diagnostics = DiagnosticLogBuffer(Path(cfg.logs_directory))
    t0 = time.perf_counter()
    try:
        results = _ingest_all(args, cfg, diagnostics, logger)
    except (UnreadableWorkbookError, OSError) as e:
        logger.error(str(e))
        return EXIT_FATAL
    finally:
        log_path = diagnostics.flush()
        if log_path is not None:
            logger.info(f"diagnostics written to {log_path}")

    log_summary(render_ingest_summary(results, time.perf_counter() - t0))

    if not (args.compare or args.publish):
        return EXIT_SUCCESS
    try:
        return _reconcile_and_publish(args, results, decisions, logger)
    except ConflictResolutionError as e:
        logger.error(f"decisions: {e}")
        return EXIT_FATAL
    except ValueError as e:
        logger.error(f"publish: {e}")
        return EXIT_FATAL
    except (CatalogStoreError, psycopg2.Error) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
