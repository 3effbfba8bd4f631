from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

import pandas as pd

"""String normalization helpers shared by the workbook and particle parsers.

All helpers are pure and never raise on malformed input: an unparseable value
is either returned unchanged or mapped to None, as documented per function.
"""

__all__ = [
    "ABSENT_TOKEN",
    "is_present",
    "is_brez",
    "cell_text",
    "format_number",
    "parse_flexible_date",
    "extract_leading_int",
    "extract_apparatus_roman_numeral",
    "split_trial_code",
    "split_trial_code_lenient",
    "extract_batch_code_without_letter",
    "extract_method_short_prefix",
]

# Slovenian "without": operators type it into cells that do not apply
ABSENT_TOKEN = "brez"

DATE_FORMATS = ("%d.%m.%Y %H:%M:%S", "%d.%m.%Y")

_DIGITS_RE = re.compile(r"\d+")
_APPARATUS_RE = re.compile(r"Ap\.?\s*(I{1,4}V?)", re.IGNORECASE)
_ROMAN_TO_ARABIC = {
    "I": "1",
    "II": "2",
    "III": "3",
    "IIII": "4",  # non-standard, present in lab templates
    "IV": "4",
}
_TRIAL_RE = re.compile(
    r"([A-Z][A-Z0-9][A-Z]\d{2}-[A-Z0-9][A-Z]\d+[A-Z]?)\s*,?\s*(.*)", re.IGNORECASE
)
_BATCH_WITHOUT_LETTER_RE = re.compile(r"[A-Z]{3}\d{2}-\d[A-Z]\d{0,2}", re.IGNORECASE)
_METHOD_SHORT_RE = re.compile(r"^(M[0-9][;,:]?)(.*)", re.DOTALL)
_QUOTED_RE = re.compile(r'^"(.*)"$', re.DOTALL)
_MIN_LENIENT_CODE_LEN = 4


def is_present(value: Any) -> bool:
    """True unless value is None, an empty string or a float NaN."""
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def is_brez(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() == ABSENT_TOKEN


def format_number(value: float | int) -> str:
    """Render a number the way spreadsheet users expect: 12.0 -> '12', 0.1 -> '0.1'."""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def cell_text(value: Any) -> str:
    """Stringify a cell value; integral floats lose their trailing '.0'."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value)
    return str(value)


def parse_flexible_date(value: Any) -> datetime | None:
    """Parse a workbook date cell.

    Native date/datetime values (including pandas Timestamps) pass through.
    Strings are tried as ``DD.MM.YYYY HH:mm:ss`` and ``DD.MM.YYYY`` first,
    then handed to ``pandas.to_datetime``. Returns None when nothing works.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def extract_leading_int(value: Any) -> int | None:
    """Return the first run of digits in ``str(value)`` as int (``'150 rpm'`` -> 150)."""
    if not is_present(value):
        return None
    match = _DIGITS_RE.search(cell_text(value))
    return int(match.group(0)) if match else None


def extract_apparatus_roman_numeral(value: Any) -> Any:
    """Map ``'Ap. III'`` style apparatus names to ``'AP3'``; anything else is returned as is."""
    if not isinstance(value, str):
        return value
    match = _APPARATUS_RE.search(value)
    if not match:
        return value
    numeral = match.group(1).upper()
    arabic = _ROMAN_TO_ARABIC.get(numeral)
    if arabic is None:
        return value
    return "AP" + arabic


def split_trial_code(value: Any) -> tuple[Any, str | None]:
    """Split ``'ABC12-3D45, tablete'`` into the trial code and trailing description."""
    if not value or not isinstance(value, str):
        return value, None
    match = _TRIAL_RE.search(value)
    if not match:
        return value, None
    description = match.group(2).strip()
    return match.group(1), description or None


def split_trial_code_lenient(value: Any) -> tuple[Any, str | None]:
    """Split on the first space or comma when at least four characters precede it."""
    if not value or not isinstance(value, str):
        return value, None
    positions = [p for p in (value.find(" "), value.find(",")) if p != -1]
    if not positions:
        return value, None
    split_at = min(positions)
    code = value[:split_at].strip()
    if len(code) < _MIN_LENIENT_CODE_LEN:
        return value, None
    description = value[split_at + 1 :].strip()
    return code, description or None


def extract_batch_code_without_letter(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    match = _BATCH_WITHOUT_LETTER_RE.search(value)
    return match.group(0) if match else value


def extract_method_short_prefix(value: str) -> tuple[str | None, str]:
    """Split a particle label like ``'M1; ABC12-3D45 granulat'`` into (``'M1'``, rest)."""
    cleaned = _QUOTED_RE.sub(r"\1", value).strip()
    match = _METHOD_SHORT_RE.match(cleaned)
    if match:
        return match.group(1).rstrip(";,:"), match.group(2).strip()
    return None, cleaned
