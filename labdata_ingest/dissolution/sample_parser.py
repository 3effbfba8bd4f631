from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from ..db.sample_metadata import SampleMetadataSink, build_mra_map, forward_mra_entries
from ..excel.reader import SheetGrid, WorkbookData
from ..logging.error_log import ErrorLogBuffer
from ..matching.ingredients import IngredientMatcher
from ..models.error_record import ErrorRecord
from ..models.records import MraBatchEntry, SampleRow
from ..text.normalize import cell_text, is_present, split_trial_code
from .common import match_active_ingredient

"""Sample/result extraction from 'izvid' (result) sheets.

Layout of a result sheet:

* header block, sheet rows 3-22: strength plus four sample groups (name,
  batch, MRA number) and the vessel count of each group in column M;
* a time x vessel block starting at the first row whose column B holds 1:
  column A is the time point, columns B.. the dissolved value per vessel.

Vessels are numbered with a running counter across the groups, so group 2
continues where group 1 stopped.
"""

__all__ = [
    "HEADER_FIRST_ROW",
    "TIME_BLOCK_ROWS",
    "is_sample_sheet",
    "find_time_block_start",
    "read_vessel_counts",
    "parse_sample_sheet",
    "parse_sample_rows",
    "mra_entries_from_samples",
]

logger = logging.getLogger(__name__)

EXCLUDED_SAMPLE_SHEETS = ("izvid_kc", "izvid_profil", "izvid_kč")

HEADER_FIRST_ROW = 3
HEADER_LAST_ROW = 22
HEADER_LAST_COL = 12
MIN_HEADER_ROWS = 19

STRENGTH_CELL = (0, 2)  # relative to the header block
ACTIVE_INGREDIENT_CELL = (2, 2)  # absolute sheet position
UNKNOWN_ACTIVE = "UNKNOWN_ACTIVE"

# (sample name row, batch row, MRA row) per group, column 2 of the header block
GROUP_DETAIL_ROWS = ((2, 3, 4), (6, 7, 8), (10, 11, 12), (14, 15, 16))
DETAIL_COL = 2
VESSEL_COUNT_ROWS = (3, 7, 11, 15)
VESSEL_COUNT_COL = 12
MRA_LENGTH = 8

SENTINEL_SCAN_ROWS = 100
SENTINEL_COL = 1
TIME_BLOCK_ROWS = 11
TIME_BLOCK_LAST_COL = 9


def is_sample_sheet(sheet_name: str) -> bool:
    lower = sheet_name.lower()
    return "izvid" in lower and not any(x in lower for x in EXCLUDED_SAMPLE_SHEETS)


def _is_sentinel(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 1
    return isinstance(value, str) and value.strip() == "1"


def find_time_block_start(sheet: SheetGrid) -> int | None:
    """First row (0-based) within the scan window whose column B equals 1."""
    for r in range(min(SENTINEL_SCAN_ROWS, len(sheet.rows))):
        if _is_sentinel(sheet.cell(r, SENTINEL_COL)):
            return r
    return None


def _cell(block: list[list[Any]], row: int, col: int) -> Any:
    if 0 <= row < len(block) and 0 <= col < len(block[row]):
        return block[row][col]
    return None


def _vessel_count(value: Any) -> int:
    if isinstance(value, bool) or not is_present(value):
        return 0
    try:
        count = float(cell_text(value).strip())
    except ValueError:
        return 0
    if count != count or count <= 0:  # NaN or non-positive
        return 0
    return int(count)


def read_vessel_counts(header: list[list[Any]]) -> list[int]:
    return [_vessel_count(_cell(header, r, VESSEL_COUNT_COL)) for r in VESSEL_COUNT_ROWS]


def _group_details(header: list[list[Any]]) -> list[dict[str, Any]]:
    details = []
    for name_row, batch_row, mra_row in GROUP_DETAIL_ROWS:
        mra = _cell(header, mra_row, DETAIL_COL)
        details.append(
            {
                "sample_diss": _cell(header, name_row, DETAIL_COL),
                "batch_diss": _cell(header, batch_row, DETAIL_COL),
                "mra_no": cell_text(mra).strip()[:MRA_LENGTH] if is_present(mra) else None,
            }
        )
    return details


def _active_ingredient(
    sheet: SheetGrid, matcher: IngredientMatcher | None, log: logging.Logger
) -> Any:
    try:
        raw = sheet.cell(*ACTIVE_INGREDIENT_CELL)
        if not is_present(raw):
            log.warning("Could not extract active ingredient from column header, using default value")
            return UNKNOWN_ACTIVE
        return match_active_ingredient(cell_text(raw), matcher, log)
    except Exception as e:
        log.warning("Error extracting active ingredient from column header: %s", e)
        return UNKNOWN_ACTIVE


def parse_sample_sheet(
    sheet: SheetGrid,
    file_name: str,
    matcher: IngredientMatcher | None,
    *,
    log: logging.Logger = logger,
) -> list[SampleRow]:
    """Emit one SampleRow per vessel per non-empty time point of a result sheet."""
    header = sheet.block(HEADER_FIRST_ROW, HEADER_LAST_ROW, HEADER_LAST_COL)
    if len(header) < MIN_HEADER_ROWS:
        log.warning("Sheet %s skipped: insufficient rows in Table 1.", sheet.name)
        return []

    start = find_time_block_start(sheet)
    if start is None:
        log.warning("Could not find starting row for Table 2 in sheet: %s", sheet.name)
        return []

    block = sheet.block(start, start + TIME_BLOCK_ROWS - 1, TIME_BLOCK_LAST_COL)
    time_rows = [row for row in block if any(v is not None for v in row)]
    if not time_rows:
        log.warning("No data found in Table 2 for sheet: %s", sheet.name)
        return []

    counts = read_vessel_counts(header)
    details = _group_details(header)
    active = _active_ingredient(sheet, matcher, log)
    strength = _cell(header, *STRENGTH_CELL)
    file_name_active_ing = f"{file_name}_{active}"

    rows: list[SampleRow] = []
    offset = 0
    for group_index, count in enumerate(counts):
        if count <= 0:
            continue
        group = details[group_index]
        log.info(
            "Processing group %d with %d vessel(s) in sheet %s.", group_index + 1, count, sheet.name
        )
        for i in range(count):
            vessel_no = offset + i + 1
            for time_row in time_rows:
                time_value = time_row[0]
                if not is_present(time_value):
                    continue
                rows.append(
                    SampleRow(
                        file_name=file_name,
                        sheet_name=sheet.name,
                        sample_diss=group["sample_diss"],
                        active_ingredient_diss=active,
                        api_strength_diss=strength,
                        batch_diss=group["batch_diss"],
                        mra_no=group["mra_no"],
                        vessel_no=vessel_no,
                        time=time_value,
                        dissolved_value=time_row[vessel_no] if vessel_no < len(time_row) else None,
                        file_name_active_ing=file_name_active_ing,
                    )
                )
        offset += count
    return rows


def _split_batch(row: SampleRow) -> SampleRow:
    if not row.batch_diss or not isinstance(row.batch_diss, str):
        return row
    short, description = split_trial_code(row.batch_diss)
    return replace(row, batch_diss_short=short, batch_diss_description=description)


def mra_entries_from_samples(rows: list[SampleRow]) -> dict[str, MraBatchEntry]:
    return build_mra_map(
        [
            MraBatchEntry(
                mra_no=row.mra_no,
                batch_diss=cell_text(row.batch_diss) if is_present(row.batch_diss) else None,
            )
            for row in rows
            if row.mra_no
        ]
    )


def parse_sample_rows(
    workbook: WorkbookData,
    file_name: str,
    matcher: IngredientMatcher | None,
    *,
    sink: SampleMetadataSink | None = None,
    log: logging.Logger = logger,
    error_log: ErrorLogBuffer | None = None,
) -> list[SampleRow]:
    """Extract SampleRows from every visible result sheet and forward the MRA map to ``sink``."""
    log.info("Starting to parse sample and result data from file: %s", file_name)
    rows: list[SampleRow] = []

    for sheet in workbook.visible_sheets():
        if not is_sample_sheet(sheet.name):
            continue
        log.info("Processing sample sheet: %s", sheet.name)
        try:
            rows.extend(parse_sample_sheet(sheet, file_name, matcher, log=log))
        except Exception as e:
            log.error("Error processing sample sheet %s: %s", sheet.name, e, exc_info=True)
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(file_name, sheet.name, "SHEET_PROCESSING_ERROR", str(e))
                )

    rows = [_split_batch(row) for row in rows]
    log.info("Finished processing sample sheets. Total rows parsed: %d", len(rows))

    forward_mra_entries(sink, file_name, mra_entries_from_samples(rows), log)

    if not rows:
        log.warning("No sample data rows were generated. Check sheet names and data structure.")
    return rows
