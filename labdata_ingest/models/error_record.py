from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per recoverable field-group failure or per fatal file failure.
``sheet`` is ``<FILE_LEVEL>`` when the failure concerns the whole file.
"""

__all__ = [
    "FILE_LEVEL",
    "ErrorRecord",
]

FILE_LEVEL = "<FILE_LEVEL>"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded file name
        sheet: sheet name, or ``<FILE_LEVEL>``
        field_group: failed field group (e.g. ``apparatus``); empty for file-level errors
        error_type: classification in UPPER_SNAKE_CASE
        message: underlying error message
    """
    timestamp: str
    file: str
    sheet: str
    field_group: str
    error_type: str
    message: str

    @staticmethod
    def create(
        file: str, sheet: str, error_type: str, message: str, field_group: str = ""
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            field_group=field_group,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
