from .reader import SheetGrid, WorkbookData, WorkbookReadError, read_workbook

__all__ = [
    "SheetGrid",
    "WorkbookData",
    "WorkbookReadError",
    "read_workbook",
]
