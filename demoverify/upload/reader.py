from __future__ import annotations

import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from ..matching.normalizer import normalize_header

"""Upload file reader.

Turns an uploaded CSV or spreadsheet into header-normalized row dicts:

- .csv: ``pandas.read_csv`` with type inference (numbers come back numeric)
- .xlsx / .xls: first sheet via ``pandas.read_excel`` (openpyxl / xlrd)
- headers normalized the same way as reference datasets
- rows whose cells are all empty are skipped, NaN cells become None

Anything that prevents reading the file at all raises UploadReadError. That
is a request-level failure, distinct from a NotFound verdict.
"""

__all__ = [
    "UploadReadError",
    "UploadTable",
    "read_upload",
    "normalize_frame",
]

CSV_SUFFIXES = (".csv",)
# suffix -> pandas.read_excel engine (xlrd reads legacy .xls)
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}


class UploadReadError(Exception):
    """Raised when an uploaded file cannot be read or parsed."""


@dataclass
class UploadTable:
    file_name: str
    headers: list[str]
    rows: list[dict[str, Any]]  # 正規化済 (列名→値)


def normalize_frame(df: pd.DataFrame, file_name: str) -> UploadTable:
    """Normalize a parsed DataFrame into an UploadTable.

    Steps:
    1. Normalize header names (trim, lower-case, whitespace -> ``_``)
    2. Box cells into plain Python objects, NaN -> None
    3. Drop rows where every cell is empty
    """
    headers = [normalize_header(c) for c in df.columns]
    frame = df.astype(object)
    frame = frame.where(pd.notna(frame), None)
    frame.columns = headers
    rows: list[dict[str, Any]] = []
    for record in frame.to_dict(orient="records"):
        if all(v is None or (isinstance(v, str) and v.strip() == "") for v in record.values()):
            continue
        rows.append(record)
    return UploadTable(file_name=file_name, headers=headers, rows=rows)


def read_upload(path: Path, max_bytes: int | None = None) -> UploadTable:
    """Read an uploaded file.

    Parameters
    ----------
    path: アップロードファイルのパス
    max_bytes: サイズ上限 (None なら無制限)

    Raises
    ------
    UploadReadError: missing file, unsupported format, size limit exceeded,
        or a parse/decode failure
    """
    if not path.is_file():
        raise UploadReadError(f"upload not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in CSV_SUFFIXES and suffix not in EXCEL_ENGINES:
        raise UploadReadError(f"unsupported file format: {path.name}")

    size = path.stat().st_size
    if max_bytes is not None and size > max_bytes:
        raise UploadReadError(f"file too large: {path.name} ({size} bytes > {max_bytes} bytes)")

    try:
        if suffix in CSV_SUFFIXES:
            # utf-8-sig: Excel 書き出しの BOM 付き CSV 対策
            df = pd.read_csv(path, encoding="utf-8-sig", skip_blank_lines=True)
        else:
            df = pd.read_excel(path, sheet_name=0, engine=EXCEL_ENGINES[suffix])
    except (OSError, ValueError, ImportError, zipfile.BadZipFile) as e:
        # ValueError covers EmptyDataError / ParserError / UnicodeDecodeError
        raise UploadReadError(f"failed to parse {path.name}: {e}") from e

    return normalize_frame(df, path.name)
