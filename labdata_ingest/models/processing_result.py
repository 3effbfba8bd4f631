from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .parse_result import ParseResult

"""Processing result models for a batch run.

FileStat holds the per-file outcome; ProcessingResult aggregates the run and
carries everything the SUMMARY line needs.
"""

__all__ = [
    "FileStatus",
    "FileStat",
    "ProcessingResult",
]


class FileStatus(Enum):
    """Outcome of one input file.

    - SUCCESS: parsed (per-sheet warnings and field-group errors allowed)
    - FAILED: a fatal parse error or an unreadable file
    """
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class FileStat:
    file_name: str
    status: FileStatus
    elapsed_seconds: float
    kind: str | None = None  # "workbook" | "particle"; None when the file failed
    method_records: int = 0
    sample_rows: int = 0
    metadata_rows: int = 0
    size_class_rows: int = 0
    error: str | None = None

    @property
    def total_rows(self) -> int:
        return self.method_records + self.sample_rows + self.metadata_rows + self.size_class_rows


@dataclass(frozen=True)
class ProcessingResult:
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] = field(default_factory=list)
    results: list[ParseResult] = field(default_factory=list)  # successful parses, input order

    @property
    def total_files(self) -> int:
        return len(self.file_stats)

    @property
    def success_files(self) -> int:
        return sum(1 for s in self.file_stats if s.status is FileStatus.SUCCESS)

    @property
    def failed_files(self) -> int:
        return sum(1 for s in self.file_stats if s.status is FileStatus.FAILED)

    def total(self, counter: str) -> int:
        """Sum one FileStat counter (e.g. ``"sample_rows"``) over all files."""
        return sum(getattr(s, counter) for s in self.file_stats)
