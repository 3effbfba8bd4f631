from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from .records import MethodRecord, MraBatchEntry, ParticleMetadataRow, SampleRow, SizeClassRow

"""Parse results returned by the dispatcher.

The two shapes are tagged by ``kind`` so a caller can branch on a single
ParseResult value without isinstance checks.
"""

__all__ = [
    "WorkbookParseResult",
    "ParticleParseResult",
    "ParseResult",
]


@dataclass(frozen=True)
class WorkbookParseResult:
    file_name: str
    method_records: list[MethodRecord]
    sample_rows: list[SampleRow]
    mra_entries: dict[str, MraBatchEntry] = field(default_factory=dict)
    log_lines: list[str] = field(default_factory=list)
    kind: Literal["workbook"] = "workbook"

    @property
    def record_count(self) -> int:
        return len(self.method_records) + len(self.sample_rows)


@dataclass(frozen=True)
class ParticleParseResult:
    file_name: str
    metadata_rows: list[ParticleMetadataRow]
    size_class_rows: list[SizeClassRow]
    mra_entries: dict[str, MraBatchEntry] = field(default_factory=dict)
    log_lines: list[str] = field(default_factory=list)
    kind: Literal["particle"] = "particle"

    @property
    def record_count(self) -> int:
        return len(self.metadata_rows) + len(self.size_class_rows)


ParseResult = Union[WorkbookParseResult, ParticleParseResult]
