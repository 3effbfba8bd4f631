from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from pathlib import PurePath

from .db.sample_metadata import SampleMetadataSink
from .dissolution import parse_workbook
from .errors import MissingSheetsError, UnsupportedFileTypeError
from .excel.reader import WorkbookData
from .logging.error_log import ErrorLogBuffer
from .logging.init import capture_log_lines
from .matching.ingredients import IngredientMatcher
from .models.parse_result import ParseResult
from .particle.csv_parser import SIZE_CLASS_WINDOW, parse_particle_csv

"""Parser dispatcher: route an uploaded file to the parser for its type."""

__all__ = [
    "WORKBOOK_EXTENSIONS",
    "PARTICLE_EXTENSIONS",
    "ParseLog",
    "file_extension",
    "check_required_sheets",
    "parse_file",
]

logger = logging.getLogger(__name__)

WORKBOOK_EXTENSIONS = ("xlsx", "xlsm", "xls")
PARTICLE_EXTENSIONS = ("csv",)


class ParseLog:
    """Collects the formatted log lines of one parse; optionally forwards them."""

    def __init__(self, forward: Callable[[str], None] | None = None) -> None:
        self.lines: list[str] = []
        self.forward = forward

    def __call__(self, line: str) -> None:
        self.lines.append(line)
        if self.forward is not None:
            self.forward(line)


def file_extension(file_name: str) -> str:
    return PurePath(file_name).suffix.lstrip(".").lower()


def check_required_sheets(workbook: WorkbookData) -> None:
    """Require at least one calculation sheet and one result sheet.

    Raises:
        MissingSheetsError: naming the missing sheet pattern(s)
    """
    names = [n.lower() for n in workbook.sheet_names]
    missing = []
    if not any("izračun" in n or "izracun" in n for n in names):
        missing.append("izracun")
    if not any("izvid" in n for n in names):
        missing.append("izvid")
    if missing:
        raise MissingSheetsError(missing)


def parse_file(
    data: bytes,
    file_name: str,
    *,
    matcher: IngredientMatcher | None = None,
    sink: SampleMetadataSink | None = None,
    log: logging.Logger = logger,
    error_log: ErrorLogBuffer | None = None,
    log_callback: Callable[[str], None] | None = None,
    size_class_window: int = SIZE_CLASS_WINDOW,
) -> ParseResult:
    """Parse one uploaded file by its extension.

    Lines logged below the package logger during the parse are returned on
    the result as ``log_lines`` and, when given, passed to ``log_callback``.

    Raises:
        UnsupportedFileTypeError: missing or unknown extension
        MissingSheetsError: workbook without calculation or result sheet
        WorkbookReadError, ParticleFormatError: unreadable content
    """
    extension = file_extension(file_name)
    if not extension:
        raise UnsupportedFileTypeError("Could not determine file type")

    parse_log = ParseLog(log_callback)
    with capture_log_lines(parse_log):
        log.info("Detected file type: %s", extension)
        try:
            if extension in PARTICLE_EXTENSIONS:
                result: ParseResult = parse_particle_csv(
                    data, file_name, sink=sink, log=log, size_class_window=size_class_window
                )
            elif extension in WORKBOOK_EXTENSIONS:
                log.info("Starting to parse Excel file: %s", file_name)
                result = parse_workbook(
                    data,
                    file_name,
                    matcher=matcher,
                    sink=sink,
                    log=log,
                    error_log=error_log,
                    validate=check_required_sheets,
                )
            else:
                raise UnsupportedFileTypeError(f"Unsupported file type: {extension}")
        except MissingSheetsError as e:
            log.error("%s", e)
            raise

    return replace(result, log_lines=parse_log.lines)
