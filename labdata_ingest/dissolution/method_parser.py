from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..excel.reader import SheetGrid, WorkbookData
from ..logging.error_log import ErrorLogBuffer
from ..matching.ingredients import IngredientMatcher
from ..models.error_record import ErrorRecord
from ..models.records import MethodRecord
from ..text.combinators import (
    combine_apparatus,
    combine_apparatus_without_baskets,
    combine_diss_apparatus,
    combine_evaluation,
    combine_increased_rpm,
    combine_media,
)
from ..text.normalize import (
    extract_apparatus_roman_numeral,
    extract_leading_int,
    is_present,
    parse_flexible_date,
)
from .common import match_active_ingredient

"""Method extraction from 'izračun' (calculation) sheets.

The calculation sheet is a fixed template: every field sits at a known
(row, column) offset. Offsets are grouped by logical field group; each group
is read inside its own try block so one malformed group leaves only its own
fields as None.
"""

__all__ = [
    "MIN_SHEET_ROWS",
    "FIELD_GROUPS",
    "is_method_sheet",
    "parse_method_sheet",
    "parse_method_records",
]

logger = logging.getLogger(__name__)

MIN_SHEET_ROWS = 5

ACTIVE_INGREDIENT_CELL = (4, 2)
API_STRENGTH_CELL = (5, 2)

# field group -> field name -> (row, col); 0-based offsets into the sheet grid
APPARATUS_ROW = 20
APPARATUS_FIELDS = {
    "mixing_element": (APPARATUS_ROW, 0),
    "rotation_speed": (APPARATUS_ROW, 1),
    "basket_type": (APPARATUS_ROW, 2),
    "basket_set": (APPARATUS_ROW, 3),
    "sinker": (APPARATUS_ROW, 7),
    "dissolution_apparatus": (APPARATUS_ROW, 9),
    "diss_apparatus_internal_code": (APPARATUS_ROW, 10),
}
INCREASED_RPM_FIELDS = {
    "increased_rpm": (20, 4),
    "increased_rpm_speed": (21, 4),
    "increased_rpm_start_time": (22, 4),
    "increased_rpm_duration": (23, 4),
}
MEDIA_ROW = 26
MEDIA_FIELDS = {
    "media_short_code": (MEDIA_ROW, 0),
    "media_ph": (MEDIA_ROW, 1),
    "media_temperature": (MEDIA_ROW, 2),
    "media_bath_temperature": (MEDIA_ROW, 3),
    "media_surfactant": (MEDIA_ROW, 4),
    "media_surfactant_percentage": (MEDIA_ROW, 5),
    "media_heating": (MEDIA_ROW, 7),
}
DILUTION_FIELDS = {
    "dilution_counter": (62, 3),
    "dilution_denominator": (63, 3),
    "dilution_note": (62, 5),
}
SAMPLING_FIELDS = {
    "vessel_type": (20, 5),
    "volume": (28, 1),
    "aliquot": (30, 1),
    "filters": (30, 3),
    "sampling": (30, 5),
    "media_return": (1, 1),
}
INSTRUMENTATION_FIELDS = {
    "evaluation": (30, 7),
    "hplc": (30, 8),
    "hplc_internal_code": (30, 9),
    "hplc_wavelength": (31, 9),
    "uv_cuvette": (30, 10),
}
PERSONNEL_FIELDS = {
    "diss_operator": (66, 1),
    "hplc_operator": (67, 1),
    "analytical_procedure": (68, 1),
    "diss_log": (69, 1),
    "hplc_log": (70, 1),
    "analysis_date": (4, 10),
}

FIELD_GROUPS: dict[str, tuple[str, dict[str, tuple[int, int]]]] = {
    "apparatus": ("Missing apparatus data", APPARATUS_FIELDS),
    "increased_rpm": ("Missing increased parameters", INCREASED_RPM_FIELDS),
    "media": ("Missing medium information", MEDIA_FIELDS),
    "dilution": ("Missing dilution info", DILUTION_FIELDS),
    "sampling": ("Missing additional method fields", SAMPLING_FIELDS),
    "instrumentation": ("Missing instrumentation fields", INSTRUMENTATION_FIELDS),
    "personnel": ("Missing people or date info", PERSONNEL_FIELDS),
}

# per-field conversions applied right after the cell read
_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "rotation_speed": extract_leading_int,
    "increased_rpm_speed": extract_leading_int,
    "increased_rpm_start_time": extract_leading_int,
    "increased_rpm_duration": extract_leading_int,
    "analysis_date": lambda v: parse_flexible_date(v) if is_present(v) else None,
}


def is_method_sheet(sheet_name: str) -> bool:
    lower = sheet_name.lower()
    return ("izračun" in lower or "izracun" in lower) and "formule" not in lower


def _read_group(sheet: SheetGrid, cells: dict[str, tuple[int, int]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field_name, (row, col) in cells.items():
        value = sheet.cell(row, col)
        converter = _CONVERTERS.get(field_name)
        values[field_name] = converter(value) if converter else value
    return values


def _derive_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        "apparatus_short": extract_apparatus_roman_numeral(fields.get("mixing_element")),
        "combined_apparatus": combine_apparatus(fields),
        "combined_apparatus_without_baskets": combine_apparatus_without_baskets(fields),
        "combined_diss_apparatus": combine_diss_apparatus(fields),
        "combined_evaluation": combine_evaluation(fields),
        "combined_media": combine_media(fields),
        "combined_increased_rpm": combine_increased_rpm(fields),
    }


def parse_method_sheet(
    sheet: SheetGrid,
    file_name: str,
    matcher: IngredientMatcher | None,
    *,
    log: logging.Logger = logger,
    error_log: ErrorLogBuffer | None = None,
) -> MethodRecord | None:
    """Build one MethodRecord from a calculation sheet, or None when the sheet is too short."""
    if len(sheet.rows) < MIN_SHEET_ROWS:
        log.warning("Sheet %s skipped: insufficient rows.", sheet.name)
        return None

    raw_active = sheet.cell(*ACTIVE_INGREDIENT_CELL)
    active = match_active_ingredient(raw_active, matcher, log) if is_present(raw_active) else None
    strength = sheet.cell(*API_STRENGTH_CELL)
    if not is_present(strength):
        strength = None

    fields: dict[str, Any] = {
        "file_name": file_name,
        "sheet_name": sheet.name,
        "active_ingredient_diss": active,
        "api_strength_diss": strength,
        "file_name_active_ing": f"{file_name}_{active}",
    }

    for group, (failure_text, cells) in FIELD_GROUPS.items():
        try:
            fields.update(_read_group(sheet, cells))
        except Exception as e:
            log.error("%s in sheet %s: %s", failure_text, sheet.name, e)
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(
                        file=file_name,
                        sheet=sheet.name,
                        error_type="FIELD_GROUP_ERROR",
                        message=str(e),
                        field_group=group,
                    )
                )

    fields.update(_derive_fields(fields))
    return MethodRecord(**fields)


def parse_method_records(
    workbook: WorkbookData,
    file_name: str,
    matcher: IngredientMatcher | None,
    *,
    log: logging.Logger = logger,
    error_log: ErrorLogBuffer | None = None,
) -> list[MethodRecord]:
    """Extract one MethodRecord per visible calculation sheet.

    A sheet that fails as a whole is logged and skipped; it never aborts the
    remaining sheets.
    """
    log.info("Starting to parse method data from file: %s", file_name)
    records: list[MethodRecord] = []

    for sheet in workbook.visible_sheets():
        if not is_method_sheet(sheet.name):
            continue
        log.info("Processing method sheet: %s", sheet.name)
        try:
            record = parse_method_sheet(sheet, file_name, matcher, log=log, error_log=error_log)
        except Exception as e:
            log.error("Error processing method sheet %s: %s", sheet.name, e, exc_info=True)
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(file_name, sheet.name, "SHEET_PROCESSING_ERROR", str(e))
                )
            continue
        if record is None:
            continue
        records.append(record)
        log.info("Successfully processed method sheet: %s", sheet.name)

    log.info("Finished processing method sheets. Parsed %d record(s)", len(records))
    return records
