"""Laboratory data ingestion: dissolution workbooks and particle-size exports."""

from .errors import MissingSheetsError, ParseError, ParticleFormatError, UnsupportedFileTypeError
from .models.parse_result import ParseResult, ParticleParseResult, WorkbookParseResult
from .parser import parse_file

__all__ = [
    "MissingSheetsError",
    "ParseError",
    "ParseResult",
    "ParticleFormatError",
    "ParticleParseResult",
    "UnsupportedFileTypeError",
    "WorkbookParseResult",
    "parse_file",
]

__version__ = "0.1.0"
