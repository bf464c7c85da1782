from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord: one line of the structured error log.

``row`` is -1 for failures that concern a whole source (a reference dataset
or an uploaded file) rather than one of its rows.
"""

__all__ = [
    "ErrorRecord",
    "SOURCE_LEVEL_ROW",
]

SOURCE_LEVEL_ROW = -1


def _utc_now() -> str:
    # 2024-01-01T00:00:00.123456Z
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: str
    source: str  # reference source (path or archive!entry) or upload file name
    variant: str  # SchemaVariant value, "unknown" if not classified
    row: int
    error_type: str  # REFERENCE_LOAD_ERROR / UPLOAD_READ_ERROR / UNEXPECTED_ERROR
    message: str

    @staticmethod
    def create(source: str, variant: str, row: int, error_type: str, message: str) -> ErrorRecord:
        return ErrorRecord(_utc_now(), source, variant, row, error_type, message)

    def to_json_line(self) -> str:
        # fixed key set, no extra fields
        return json.dumps(asdict(self), ensure_ascii=False)
