from __future__ import annotations

import io
import math
from dataclasses import dataclass
from typing import Any

import pandas as pd

from ..errors import ParseError

"""Workbook reader for fixed-layout lab workbooks.

Sheets are read without a header (``header=None``) and with ``dtype=object``
so every cell keeps its workbook type and its A1-relative position. Empty
cells become None. Hidden state comes from the engine's book object:
openpyxl exposes ``sheet_state``, xlrd exposes ``visibility``.
"""

__all__ = [
    "WorkbookReadError",
    "SheetGrid",
    "WorkbookData",
    "read_workbook",
]


class WorkbookReadError(ParseError):
    """Raised when the bytes cannot be opened or decoded as a workbook."""


@dataclass(frozen=True)
class SheetGrid:
    name: str
    hidden: bool
    rows: list[list[Any]]  # row-major, None-filled gaps

    def row(self, index: int) -> list[Any]:
        """Row at ``index`` or an empty list past the end."""
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return []

    def cell(self, row: int, col: int) -> Any:
        values = self.row(row)
        if 0 <= col < len(values):
            return values[col]
        return None

    def block(self, first_row: int, last_row: int, last_col: int) -> list[list[Any]]:
        """Rows ``first_row..last_row`` (inclusive) cut to columns ``0..last_col``.

        Only rows present in the sheet are returned.
        """
        out: list[list[Any]] = []
        for r in range(first_row, min(last_row, len(self.rows) - 1) + 1):
            values = self.rows[r][: last_col + 1]
            out.append(values + [None] * (last_col + 1 - len(values)))
        return out


@dataclass(frozen=True)
class WorkbookData:
    sheets: list[SheetGrid]

    @property
    def sheet_names(self) -> list[str]:
        return [s.name for s in self.sheets]

    def visible_sheets(self) -> list[SheetGrid]:
        return [s for s in self.sheets if not s.hidden]


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    return value


def _is_hidden(book: Any, sheet_name: str) -> bool:
    if book is None:
        return False
    # openpyxl Workbook
    if hasattr(book, "sheetnames"):
        try:
            state = getattr(book[sheet_name], "sheet_state", "visible")
        except KeyError:
            return False
        return state in ("hidden", "veryHidden")
    # xlrd Book
    if hasattr(book, "sheet_by_name"):
        try:
            return bool(book.sheet_by_name(sheet_name).visibility)
        except Exception:
            return False
    return False


def read_workbook(data: bytes) -> WorkbookData:
    """Read every sheet of a workbook held in memory.

    Raises:
        WorkbookReadError: the bytes are not a readable xlsx/xlsm/xls container
    """
    try:
        xls = pd.ExcelFile(io.BytesIO(data))
    except Exception as e:
        raise WorkbookReadError(f"cannot open workbook: {e}") from e

    try:
        book = getattr(xls, "book", None)
        sheets: list[SheetGrid] = []
        for name in xls.sheet_names:
            df = xls.parse(name, header=None, dtype=object)
            rows = [[_clean(v) for v in raw] for raw in df.itertuples(index=False, name=None)]
            sheets.append(SheetGrid(name=str(name), hidden=_is_hidden(book, name), rows=rows))
    except Exception as e:
        raise WorkbookReadError(f"cannot decode workbook: {e}") from e
    finally:
        xls.close()
    return WorkbookData(sheets=sheets)
