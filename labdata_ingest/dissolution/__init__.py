from __future__ import annotations

import logging
from collections.abc import Callable

from ..db.sample_metadata import SampleMetadataSink
from ..excel.reader import WorkbookData, read_workbook
from ..logging.error_log import ErrorLogBuffer
from ..matching.ingredients import IngredientMatcher
from ..models.parse_result import WorkbookParseResult
from .method_parser import parse_method_records
from .sample_parser import mra_entries_from_samples, parse_sample_rows

"""Dissolution workbook parsing: method sheets plus result sheets."""

__all__ = [
    "parse_workbook",
]

logger = logging.getLogger(__name__)


def parse_workbook(
    data: bytes,
    file_name: str,
    *,
    matcher: IngredientMatcher | None = None,
    sink: SampleMetadataSink | None = None,
    log: logging.Logger = logger,
    error_log: ErrorLogBuffer | None = None,
    validate: Callable[[WorkbookData], None] | None = None,
) -> WorkbookParseResult:
    """Open the workbook once and run method and sample extraction over it.

    ``validate`` runs on the opened workbook before any extraction and may
    raise to reject the file.

    Raises:
        WorkbookReadError: the bytes are not a readable workbook
    """
    workbook = read_workbook(data)
    if validate is not None:
        validate(workbook)

    method_records = parse_method_records(
        workbook, file_name, matcher, log=log, error_log=error_log
    )
    log.info("Method data parsing complete. Found %d records.", len(method_records))
    sample_rows = parse_sample_rows(
        workbook, file_name, matcher, sink=sink, log=log, error_log=error_log
    )
    log.info("Sample data parsing complete. Found %d records.", len(sample_rows))

    return WorkbookParseResult(
        file_name=file_name,
        method_records=method_records,
        sample_rows=sample_rows,
        mra_entries=mra_entries_from_samples(sample_rows),
    )
