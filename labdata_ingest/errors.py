from __future__ import annotations

"""Fatal parse errors.

Raising any of these aborts the whole file; per-sheet and per-field-group
problems are logged and never raised.
"""

__all__ = [
    "ParseError",
    "UnsupportedFileTypeError",
    "MissingSheetsError",
    "ParticleFormatError",
]


class ParseError(Exception):
    """Base class for errors that fail an entire file."""


class UnsupportedFileTypeError(ParseError):
    pass


class MissingSheetsError(ParseError):
    """Workbook lacks an 'izračun' and/or an 'izvid' sheet."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Excel file does not contain required sheets: {', '.join(missing)}")


class ParticleFormatError(ParseError):
    """Particle-size export does not have the expected zone layout."""
