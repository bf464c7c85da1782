from __future__ import annotations

import logging
import subprocess
import threading
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

import pandas as pd

from ..matching.normalizer import KEY_FIELDS, build_key, comparable_value, normalize_header
from ..models.config_models import DEFAULT_ARCHIVE_COMMAND, DEFAULT_CHUNK_SIZE
from ..models.reference import ReferenceIndex, SourceDescriptor, SourceKind
from ..models.schema_variant import SchemaVariant

"""Reference dataset loader.

Builds a ReferenceIndex from a resolved source. CSV sources (flat files and
archive entries) are parsed incrementally with ``pandas.read_csv(chunksize=)``
so memory is bounded by the retained key -> comparable-columns map rather than
by the source size. Spreadsheets are read with ``pandas.read_excel`` and
indexed slice by slice.

Archive entries are streamed by an external command (``unzip -p`` by
default). Its stdout pipe is parsed as it is produced while a helper thread
drains stderr; if parsing fails the process is killed, and the exit status is
joined with parse completion before the index is returned.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ReferenceLoadError",
    "LoadStats",
    "load_reference_index",
]

# suffix -> pandas.read_excel engine
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}


class ReferenceLoadError(Exception):
    """Raised when a resolved source cannot be turned into an index."""


@dataclass
class LoadStats:
    rows_read: int = 0
    rows_indexed: int = 0
    rows_skipped: int = 0  # キー導出不可の行
    duplicate_keys: int = 0


class _IndexBuilder:
    """Accumulates one variant's key -> comparable values map."""

    def __init__(self, variant: SchemaVariant) -> None:
        self.variant = variant
        self.records: dict[str, dict[str, Any]] = {}
        self.stats = LoadStats()

    def add_frame(self, df: pd.DataFrame) -> None:
        df.columns = [normalize_header(c) for c in df.columns]
        keep = [c for c in self.variant.comparable_columns if c in df.columns]
        wanted = [c for c in (*KEY_FIELDS, *keep) if c in df.columns]
        for rec in df[wanted].to_dict(orient="records"):
            self.stats.rows_read += 1
            key = build_key(rec)
            if key is None:
                self.stats.rows_skipped += 1
                continue
            if key in self.records:
                # last row wins
                self.stats.duplicate_keys += 1
            self.records[key] = {c: comparable_value(rec.get(c)) for c in keep}
            self.stats.rows_indexed += 1


def _consume_csv(handle: IO[bytes] | Path, builder: _IndexBuilder, chunk_size: int) -> None:
    # dtype=str: 値の解釈は comparable_value に一任 (upload 側と同一規則)
    with pd.read_csv(
        handle,
        chunksize=chunk_size,
        dtype=str,
        encoding="utf-8",
        skip_blank_lines=True,
    ) as reader:
        for chunk in reader:
            builder.add_frame(chunk)


def _consume_spreadsheet(path: Path, builder: _IndexBuilder, chunk_size: int) -> None:
    df = pd.read_excel(path, engine=EXCEL_ENGINES[path.suffix.lower()])
    for start in range(0, len(df), chunk_size):
        builder.add_frame(df.iloc[start:start + chunk_size].copy())


def _drain(stream: IO[bytes], sink: list[bytes]) -> None:
    for block in iter(lambda: stream.read(8192), b""):
        sink.append(block)
    stream.close()


def _consume_archive_entry(
    descriptor: SourceDescriptor,
    builder: _IndexBuilder,
    command: Sequence[str],
    chunk_size: int,
) -> None:
    argv = [*command, str(descriptor.path), str(descriptor.entry)]
    logger.debug("archive extraction argv=%s", argv)
    try:
        proc = subprocess.Popen(argv, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as e:
        raise ReferenceLoadError(f"cannot start archive extraction {argv[0]!r}: {e}") from e

    assert proc.stdout is not None and proc.stderr is not None
    stderr_blocks: list[bytes] = []
    drainer = threading.Thread(target=_drain, args=(proc.stderr, stderr_blocks), daemon=True)
    drainer.start()

    parse_error: Exception | None = None
    killed = False
    try:
        _consume_csv(proc.stdout, builder, chunk_size)
    except (OSError, ValueError) as e:
        parse_error = e
        if proc.poll() is None:
            # 生産側を止めないと wait() がブロックする
            proc.kill()
            killed = True
    finally:
        proc.stdout.close()
        returncode = proc.wait()
        drainer.join()

    stderr = b"".join(stderr_blocks).decode("utf-8", errors="replace").strip()
    if returncode != 0 and not killed:
        message = f"archive extraction exited with status {returncode} for {descriptor.describe()}"
        if stderr:
            message += f": {stderr}"
        raise ReferenceLoadError(message) from parse_error
    if parse_error is not None:
        raise ReferenceLoadError(f"failed to parse {descriptor.describe()}: {parse_error}") from parse_error


def load_reference_index(
    descriptor: SourceDescriptor,
    *,
    archive_command: Sequence[str] = DEFAULT_ARCHIVE_COMMAND,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ReferenceIndex:
    """Stream a reference source into a frozen ReferenceIndex.

    Args:
        descriptor: Resolved source (file or archive entry)
        archive_command: Command prefix that writes an archive entry to stdout;
            invoked as ``[*archive_command, archive_path, entry]``
        chunk_size: Rows per parsed chunk

    Returns:
        ReferenceIndex (available) holding only the variant's comparable columns

    Raises:
        ReferenceLoadError: Source unreadable, undecodable, or the extraction
            command exited non-zero
    """
    builder = _IndexBuilder(descriptor.variant)
    try:
        if descriptor.kind is SourceKind.ARCHIVE_ENTRY:
            _consume_archive_entry(descriptor, builder, archive_command, chunk_size)
        elif descriptor.path.suffix.lower() in EXCEL_ENGINES:
            _consume_spreadsheet(descriptor.path, builder, chunk_size)
        else:
            _consume_csv(descriptor.path, builder, chunk_size)
    except ReferenceLoadError:
        raise
    except (OSError, ValueError, ImportError, zipfile.BadZipFile) as e:
        # ValueError covers UnicodeDecodeError / ParserError / EmptyDataError
        raise ReferenceLoadError(f"failed to read {descriptor.describe()}: {e}") from e

    stats = builder.stats
    if stats.rows_indexed == 0:
        logger.warning(
            "reference source %s produced no keyed rows (rows_read=%d)",
            descriptor.describe(),
            stats.rows_read,
        )
    logger.debug(
        "variant=%s source=%s rows_read=%d indexed=%d skipped=%d duplicate_keys=%d",
        descriptor.variant.value,
        descriptor.describe(),
        stats.rows_read,
        stats.rows_indexed,
        stats.rows_skipped,
        stats.duplicate_keys,
    )
    return ReferenceIndex.build(
        descriptor.variant,
        builder.records,
        row_count=stats.rows_indexed,
        source=descriptor.describe(),
    )
