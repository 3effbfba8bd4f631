"""Record and result models shared by the parsers and the batch services."""

from .error_record import FILE_LEVEL, ErrorRecord
from .parse_result import ParseResult, ParticleParseResult, WorkbookParseResult
from .processing_result import FileStat, FileStatus, ProcessingResult
from .records import MethodRecord, MraBatchEntry, ParticleMetadataRow, SampleRow, SizeClassRow

__all__ = [
    # Records
    "MethodRecord",
    "SampleRow",
    "ParticleMetadataRow",
    "SizeClassRow",
    "MraBatchEntry",
    # Results
    "ParseResult",
    "WorkbookParseResult",
    "ParticleParseResult",
    "FileStat",
    "FileStatus",
    "ProcessingResult",
    # Errors
    "FILE_LEVEL",
    "ErrorRecord",
]
