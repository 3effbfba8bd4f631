from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, IngestConfig, load_config
from ..db.ingredients import PostgresIngredientProvider
from ..db.sample_metadata import (
    NullSampleMetadataSink,
    PostgresSampleMetadataStore,
    SampleMetadataSink,
)
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..matching.ingredients import (
    IngredientCache,
    IngredientMatcher,
    IngredientProvider,
    StaticIngredientProvider,
)
from ..models.parse_result import ParseResult
from ..models.processing_result import ProcessingResult
from ..services.orchestrator import ProcessingError, process_files, scan_input_files
from ..services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env (override) and the YAML config
- Collect input files (arguments, or a scan of source_directory)
- Connect to PostgreSQL for the ingredient vocabulary and sample metadata;
  fall back to mock mode (static vocabulary, no writes) when that fails or
  DISABLE_DB_CONNECT=1
- Parse every file, flush the error log, print the SUMMARY line
"""

__all__ = [
    "EXIT_SUCCESS_ALL",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_FATAL",
    "main",
]

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_SAMPLE_ROWS = 3


@contextmanager
def _db_connection(cfg: IngestConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield a psycopg2 cursor.

    Connection settings, first hit wins:
        1. DATABASE_URL / PGDSN (after .env was loaded with override)
        2. config ``database.dsn``
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, falling back
           to the individual ``database`` keys of the config
    """
    import psycopg2  # type: ignore

    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    # transactions are opened and closed per file by the orchestrator
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so its PostgreSQL settings win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="labdata_ingest",
        description="Parse dissolution workbooks and particle-size exports",
    )
    p.add_argument("files", nargs="*", type=Path, help="Files to parse (default: scan source_directory)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect", action="store_true", help="Print parsed counts and first rows per table")
    return p.parse_args(argv)


def _static_provider(cfg: IngestConfig, logger: logging.Logger) -> StaticIngredientProvider:
    path = cfg.matching.ingredients_file
    if not path:
        return StaticIngredientProvider()
    try:
        return StaticIngredientProvider.from_file(Path(path))
    except OSError as e:
        logger.warning("cannot read ingredients file %s: %s", path, e)
        return StaticIngredientProvider()


def _matcher(cfg: IngestConfig, provider: IngredientProvider) -> IngredientMatcher:
    return IngredientMatcher(
        IngredientCache(provider),
        threshold=cfg.matching.threshold,
        lenient_threshold=cfg.matching.lenient_threshold,
    )


def _preload_vocabulary(provider: IngredientProvider) -> StaticIngredientProvider:
    # must run before the per-file BEGIN; a failed SELECT aborts the open transaction
    return StaticIngredientProvider(IngredientCache(provider).get())


def _run(
    cfg: IngestConfig,
    files: list[Path],
    provider: IngredientProvider,
    sink: SampleMetadataSink,
    cursor: Any = None,
) -> ProcessingResult:
    if files:
        provider = _preload_vocabulary(provider)
    return process_files(
        files,
        matcher=_matcher(cfg, provider),
        sink=sink,
        error_log=ErrorLogBuffer(),
        cursor=cursor,
        size_class_window=cfg.size_class_window,
    )


def _tables(result: ParseResult) -> dict[str, list[Any]]:
    if result.kind == "workbook":
        return {"method": result.method_records, "sample": result.sample_rows}
    return {"metadata": result.metadata_rows, "size_class": result.size_class_rows}


def _print_inspection(result: ProcessingResult) -> None:
    for parsed in result.results:
        print(f"FILE: {parsed.file_name} kind={parsed.kind}")
        for table, rows in _tables(parsed).items():
            print(f"  TABLE: {table} rows={len(rows)}")
            for row in rows[:INSPECT_SAMPLE_ROWS]:
                print("    " + json.dumps(row.as_dict(), ensure_ascii=False, default=str))
    for stat in result.file_stats:
        if stat.error:
            print(f"FILE: {stat.file_name} error={stat.error}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] from tests must not fall through to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error("config: %s", e)
        return EXIT_FATAL

    if args.files:
        files = list(args.files)
    else:
        directory = Path(cfg.source_directory)
        try:
            files = scan_input_files(directory, cfg.file_patterns)
        except ProcessingError as e:
            logger.error("%s", e)
            return EXIT_FATAL
        logger.info("Processing files from: %s", directory)

    db_mode = "mock"
    result: ProcessingResult | None = None
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
    else:
        try:
            with _db_connection(cfg) as cur:
                db_mode = "live"
                result = _run(
                    cfg,
                    files,
                    PostgresIngredientProvider(cur, cfg.tables.active_ingredient),
                    PostgresSampleMetadataStore(
                        cur,
                        cfg.tables.sample_metadata,
                        materialira_lookup=cfg.materialira_lookup,
                    ),
                    cursor=cur,
                )
        except Exception as db_e:
            if result is not None:
                # connection teardown failed after a completed run
                logger.warning("DB connection close failed: %s", db_e)
            else:
                db_mode = "mock"
                logger.info("DB connection failed -> fallback to mock mode: %s", db_e)

    if result is None:
        result = _run(cfg, files, _static_provider(cfg, logger), NullSampleMetadataSink())

    logger.info("mode=%s files=%d", db_mode, result.total_files)
    if args.inspect:
        _print_inspection(result)

    # log_summary prepends the SUMMARY label itself
    log_summary(render_summary_line(result).removeprefix("SUMMARY "))

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL
