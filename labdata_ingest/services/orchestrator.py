from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..db.sample_metadata import SampleMetadataSink
from ..errors import ParseError
from ..logging.error_log import ErrorLogBuffer
from ..matching.ingredients import IngredientMatcher
from ..models.error_record import FILE_LEVEL, ErrorRecord
from ..models.parse_result import ParseResult
from ..models.processing_result import FileStat, FileStatus, ProcessingResult
from ..parser import parse_file
from ..particle.csv_parser import SIZE_CLASS_WINDOW
from .progress import ProgressTracker

"""Batch orchestration: scan an input directory and parse files one at a time.

Each file runs inside its own transaction when a cursor is given: COMMIT
after a successful parse, ROLLBACK after a failure. A failing file never
stops the batch; its error goes to the error log as a file-level record.
"""

__all__ = [
    "ProcessingError",
    "scan_input_files",
    "process_file",
    "process_files",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal batch error (unusable input directory)."""


def scan_input_files(directory: Path, patterns: Sequence[str]) -> list[Path]:
    """Files in ``directory`` (non-recursive) matching any glob in ``patterns``, sorted by name.

    Raises:
        ProcessingError: the directory is missing or unreadable
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    try:
        found = {p for pattern in patterns for p in directory.glob(pattern) if p.is_file()}
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e
    return sorted(found, key=lambda p: p.name)


def _error_type(exc: Exception) -> str:
    if isinstance(exc, ParseError):
        return "PARSE_ERROR"
    if isinstance(exc, OSError):
        return "FILE_READ_ERROR"
    return "UNEXPECTED_ERROR"


def _execute(cursor: Any, statement: str) -> None:
    if cursor is not None:
        cursor.execute(statement)


def process_file(
    path: Path,
    *,
    matcher: IngredientMatcher | None = None,
    sink: SampleMetadataSink | None = None,
    error_log: ErrorLogBuffer | None = None,
    cursor: Any = None,
    size_class_window: int = SIZE_CLASS_WINDOW,
) -> tuple[FileStat, ParseResult | None]:
    """Parse one file; a fatal error becomes a FAILED FileStat, never an exception."""
    started = time.perf_counter()
    try:
        _execute(cursor, "BEGIN")
        result = parse_file(
            path.read_bytes(),
            path.name,
            matcher=matcher,
            sink=sink,
            error_log=error_log,
            size_class_window=size_class_window,
        )
        _execute(cursor, "COMMIT")
    except Exception as e:
        if cursor is not None:
            try:
                cursor.execute("ROLLBACK")
            except Exception as rollback_e:
                logger.error("rollback failed for %s: %s", path.name, rollback_e)
        if isinstance(e, (ParseError, OSError)):
            logger.error("File %s failed: %s", path.name, e)
        else:
            logger.error("File %s failed unexpectedly: %s", path.name, e, exc_info=True)
        if error_log is not None:
            error_log.append(ErrorRecord.create(path.name, FILE_LEVEL, _error_type(e), str(e)))
        stat = FileStat(
            file_name=path.name,
            status=FileStatus.FAILED,
            elapsed_seconds=time.perf_counter() - started,
            error=str(e),
        )
        return stat, None

    elapsed = time.perf_counter() - started
    if result.kind == "workbook":
        stat = FileStat(
            file_name=path.name,
            status=FileStatus.SUCCESS,
            elapsed_seconds=elapsed,
            kind=result.kind,
            method_records=len(result.method_records),
            sample_rows=len(result.sample_rows),
        )
    else:
        stat = FileStat(
            file_name=path.name,
            status=FileStatus.SUCCESS,
            elapsed_seconds=elapsed,
            kind=result.kind,
            metadata_rows=len(result.metadata_rows),
            size_class_rows=len(result.size_class_rows),
        )
    return stat, result


def process_files(
    paths: Sequence[Path],
    *,
    matcher: IngredientMatcher | None = None,
    sink: SampleMetadataSink | None = None,
    error_log: ErrorLogBuffer | None = None,
    cursor: Any = None,
    size_class_window: int = SIZE_CLASS_WINDOW,
) -> ProcessingResult:
    """Parse ``paths`` strictly one after another and aggregate the outcome.

    The error log is flushed once at the end of the run.
    """
    start_time = datetime.now(UTC)
    started = time.perf_counter()
    file_stats: list[FileStat] = []
    results: list[ParseResult] = []

    with ProgressTracker(len(paths), description="Processing files") as progress:
        for path in paths:
            progress.start_file(path)
            stat, result = process_file(
                path,
                matcher=matcher,
                sink=sink,
                error_log=error_log,
                cursor=cursor,
                size_class_window=size_class_window,
            )
            file_stats.append(stat)
            if result is not None:
                results.append(result)
            progress.set_postfix(
                success=sum(1 for s in file_stats if s.status is FileStatus.SUCCESS),
                failed=sum(1 for s in file_stats if s.status is FileStatus.FAILED),
            )
            progress.finish_file(success=stat.status is FileStatus.SUCCESS)

    if error_log is not None:
        try:
            log_path = error_log.flush()
        except OSError as e:
            logger.error("failed to write error log: %s", e)
        else:
            if log_path is not None:
                logger.info("Error log written to %s", log_path)

    return ProcessingResult(
        start_time=start_time,
        end_time=datetime.now(UTC),
        elapsed_seconds=time.perf_counter() - started,
        file_stats=file_stats,
        results=results,
    )
