from __future__ import annotations

import logging
import math
import numbers
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

import pandas as pd

from ..models.schema_variant import SchemaVariant
from ..models.uploaded_row import UploadedRow

"""Row normalization & schema detection.

The functions here are shared by the reference loader and the matcher. Key
derivation and value comparability must be identical on both sides, so
neither side may normalize on its own:

- headers: trimmed, lower-cased, whitespace runs replaced by ``_``
- composite key: ``date|state|district|pincode``
- comparable values: numbers (numeric strings included) -> float, other text
  -> trimmed lower-case, blank/None/NaN -> NO_VALUE (never equal to 0)
"""

logger = logging.getLogger(__name__)

__all__ = [
    "NO_VALUE",
    "KEY_SEPARATOR",
    "DATE_FORMAT",
    "ClassificationResult",
    "normalize_header",
    "normalize_row",
    "normalize_date",
    "build_key",
    "comparable_value",
    "detect_variant",
    "comparable_columns_for",
    "classify_and_normalize",
]

KEY_SEPARATOR = "|"
KEY_FIELDS = ("date", "state", "district", "pincode")
DATE_FORMAT = "%d-%m-%Y"  # dataset native day-month-year

_WHITESPACE = re.compile(r"\s+")
_INTEGRAL_DECIMAL = re.compile(r"^(\d+)\.0+$")


class _NoValue(Enum):
    NO_VALUE = "<no value>"

    def __repr__(self) -> str:
        return "NO_VALUE"


NO_VALUE = _NoValue.NO_VALUE


@dataclass(frozen=True)
class ClassificationResult:
    variant: SchemaVariant
    rows: list[UploadedRow]
    comparable_columns: tuple[str, ...]
    headers: tuple[str, ...] = ()


def normalize_header(name: Any) -> str:
    """Canonical column name: trimmed, lower-case, whitespace runs as ``_``.

    ``" Age 0 5"`` -> ``"age_0_5"``. Idempotent, so already-normalized
    headers pass through unchanged.
    """
    return _WHITESPACE.sub("_", str(name).strip().lower())


def normalize_row(raw: Mapping[Any, Any]) -> dict[str, Any]:
    """Copy of ``raw`` with every key run through normalize_header (values untouched)."""
    return {normalize_header(k): v for k, v in raw.items()}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # list-like 値は欠損扱いしない
        return False


def _as_text(value: Any) -> str | None:
    if is_blank(value):
        return None
    if isinstance(value, numbers.Real) and not isinstance(value, bool) and float(value).is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_place(value: Any) -> str | None:
    """State/district form used in keys: lower-case, inner whitespace collapsed.

    Returns None for blank cells.
    """
    text = _as_text(value)
    if text is None:
        return None
    return _WHITESPACE.sub(" ", text.lower())


def normalize_pincode(value: Any) -> str | None:
    """Trimmed pincode text; integral floats (``403001.0``) lose the decimals."""
    text = _as_text(value)
    if text is None:
        return None
    # spreadsheets and inferred CSV columns hand back 403001.0
    m = _INTEGRAL_DECIMAL.match(text)
    return m.group(1) if m else text


def normalize_date(value: Any) -> str | None:
    """Normalize a date cell to a string.

    Real date objects (Excel cells, pandas Timestamps) are rendered as
    DD-MM-YYYY; text is only trimmed, so whatever format the dataset uses is
    kept as-is on both the reference and the upload side.
    """
    if is_blank(value):
        return None
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    return _as_text(value)


def build_key(row: Mapping[str, Any]) -> str | None:
    """Derive the composite key from a header-normalized row.

    Args:
        row: Row keyed by normalized header names

    Returns:
        ``date|state|district|pincode`` built from the normalized parts, or
        None when any of the four is missing. Shared by the reference loader
        and the upload side so both produce identical keys.
    """
    parts = (
        normalize_date(row.get("date")),
        normalize_place(row.get("state")),
        normalize_place(row.get("district")),
        normalize_pincode(row.get("pincode")),
    )
    if any(p is None or p == "" for p in parts):
        return None
    return KEY_SEPARATOR.join(parts)  # type: ignore[arg-type]


def comparable_value(value: Any) -> float | str | _NoValue:
    """Form a cell takes for reference comparison.

    Args:
        value: Raw cell from an upload or a reference source

    Returns:
        float for numbers and numeric text (``"10"`` == ``10.0``), trimmed
        lower-case text otherwise, NO_VALUE for None, NaN and blanks
    """
    if is_blank(value):
        return NO_VALUE
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, numbers.Real):
        return float(value)
    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        return text.lower()
    if math.isnan(number):
        return NO_VALUE
    return number


def detect_variant(headers: Iterable[str]) -> SchemaVariant:
    """Classify a header set; first variant (in check order) with a marker wins."""
    present = set(headers)
    for variant in SchemaVariant.known():
        if any(marker in present for marker in variant.marker_columns):
            return variant
    return SchemaVariant.UNKNOWN


def comparable_columns_for(variant: SchemaVariant, headers: Iterable[str]) -> tuple[str, ...]:
    """The variant's comparable columns that ``headers`` actually contains, in declared order."""
    present = set(headers)
    return tuple(c for c in variant.comparable_columns if c in present)


def classify_and_normalize(
    raw_rows: Iterable[Mapping[Any, Any]],
    headers: Sequence[Any] | None = None,
) -> ClassificationResult:
    """Normalize uploaded rows and classify the file they came from.

    Args:
        raw_rows: Parsed rows (header -> value). Headers may or may not be
            normalized already; normalization is idempotent.
        headers: Column names of the file. Defaults to the union of row keys
            in first-appearance order.

    Returns:
        ClassificationResult with the detected variant, one UploadedRow per
        input row and the comparable columns actually present.
    """
    normalized = [normalize_row(r) for r in raw_rows]
    if headers is None:
        seen: dict[str, None] = {}
        for r in normalized:
            for k in r:
                seen.setdefault(k)
        header_list = list(seen)
    else:
        header_list = [normalize_header(h) for h in headers]

    variant = detect_variant(header_list)
    comparable = comparable_columns_for(variant, header_list)
    rows = [
        UploadedRow(
            row_number=i,
            values=r,
            variant=variant,
            date=normalize_date(r.get("date")),
            key=build_key(r),
        )
        for i, r in enumerate(normalized, start=1)
    ]
    logger.debug(
        "classified variant=%s rows=%d comparable_columns=%s",
        variant.value,
        len(rows),
        list(comparable),
    )
    return ClassificationResult(
        variant=variant,
        rows=rows,
        comparable_columns=comparable,
        headers=tuple(header_list),
    )
