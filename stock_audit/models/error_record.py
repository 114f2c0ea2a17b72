from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the structured audit error log.

Each record is one JSON Lines entry with a fixed key set. ``row`` is -1 for
failures that are not tied to a data row (import, persistence, export).
"""

__all__ = [
    "ErrorRecord",
    "IMPORT_FAILURE",
    "PERSISTENCE_FAILURE",
    "EXPORT_FAILURE",
]

IMPORT_FAILURE = "IMPORT_FAILURE"
PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
EXPORT_FAILURE = "EXPORT_FAILURE"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Audit workbook name the failure relates to ("" if none loaded)
        row: Buffer row index, or -1 when not row-specific
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str
    file: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(timestamp=ts, file=file, row=row, error_type=error_type, message=message)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
