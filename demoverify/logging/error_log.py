from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Structured error log.

Handled failures (a reference dataset that would not load, an upload that
could not be read) are collected during a run and written once at the end as
JSON Lines to ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC stamp of the first
write). Runs without failures leave no file behind.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "error_log_name",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def error_log_name(moment: datetime) -> str:
    return f"errors-{moment.strftime(TIMESTAMP_FMT)}.log"


class ErrorLogBuffer:
    """Collects ErrorRecords from any thread; flush() appends them to disk.

    The target file is fixed the first time it is needed, so repeated
    flushes within one run keep appending to the same log.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._dir = logs_dir if logs_dir is not None else LOGS_DIR
        self._pending: list[ErrorRecord] = []
        self._lock = threading.Lock()
        self._path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._path is None:
            self._dir.mkdir(parents=True, exist_ok=True)
            self._path = self._dir / error_log_name(datetime.now(UTC))
        return self._path

    @property
    def records(self) -> list[ErrorRecord]:
        with self._lock:
            return list(self._pending)

    def append(self, record: ErrorRecord) -> None:
        with self._lock:
            self._pending.append(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def flush(self) -> Path | None:
        """Write pending records; None (and no file) when there are none."""
        with self._lock:
            batch, self._pending = self._pending, []
        if not batch:
            return None
        target = self.file_path
        lines = "".join(f"{rec.to_json_line()}\n" for rec in batch)
        with target.open("a", encoding="utf-8") as fh:
            fh.write(lines)
        return target
