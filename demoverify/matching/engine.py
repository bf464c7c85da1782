from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor

from ..models.reference import ReferenceIndex
from ..models.schema_variant import SchemaVariant
from ..models.uploaded_row import UploadedRow
from ..models.verdict import BatchSummary, MatchResult, RecordResult, Verdict
from .normalizer import NO_VALUE, comparable_value

"""Matching engine.

Each uploaded row gets exactly one Verdict. Rules are evaluated in order and
the first applicable one wins:

1. variant UNKNOWN                         -> NotFound
2. composite key not derivable             -> NotFound
3. variant index unavailable or empty      -> NotFound
4. key absent from the index               -> NotFound
5. no comparable column carries a value    -> NotFound
6. any present column differs              -> Mismatch (columns listed)
7. otherwise                               -> Verified

A row whose key is not in the reference data is therefore never a Mismatch.
Matching is pure given the (frozen) indices and never raises for row content.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "REASON_UNRECOGNIZED_SCHEMA",
    "REASON_MISSING_FIELDS",
    "REASON_REFERENCE_UNAVAILABLE",
    "REASON_NOT_IN_REFERENCE",
    "REASON_NO_COMPARABLE_COLUMNS",
    "REASON_VERIFIED",
    "match_row",
    "match_batch",
]

REASON_UNRECOGNIZED_SCHEMA = "unrecognized schema"
REASON_MISSING_FIELDS = "missing required fields"
REASON_REFERENCE_UNAVAILABLE = "reference data unavailable"
REASON_NOT_IN_REFERENCE = "not present in reference dataset"
REASON_NO_COMPARABLE_COLUMNS = "no comparable columns in this record"
REASON_VERIFIED = "matched reference record"


def match_row(
    row: UploadedRow,
    variant: SchemaVariant,
    indices: Mapping[SchemaVariant, ReferenceIndex],
    comparable_columns: Sequence[str] | None = None,
) -> Verdict:
    """Decide the verdict for one row.

    Args:
        row: Normalized uploaded row
        variant: Variant the upload file was classified as
        indices: Reference index per variant
        comparable_columns: Columns of this file to compare; defaults to the
            variant's declared columns

    Returns:
        Verdict (never raises)
    """
    if variant is SchemaVariant.UNKNOWN:
        return Verdict.not_found(REASON_UNRECOGNIZED_SCHEMA)

    if row.key is None:
        return Verdict.not_found(REASON_MISSING_FIELDS)

    index = indices.get(variant)
    if index is None or not index.usable:
        return Verdict.not_found(REASON_REFERENCE_UNAVAILABLE)

    reference = index.lookup(row.key)
    if reference is None:
        return Verdict.not_found(REASON_NOT_IN_REFERENCE)

    columns = variant.comparable_columns if comparable_columns is None else comparable_columns
    present: list[tuple[str, object]] = []
    for column in columns:
        value = comparable_value(row.get(column))
        if value is not NO_VALUE:
            present.append((column, value))
    if not present:
        return Verdict.not_found(REASON_NO_COMPARABLE_COLUMNS)

    mismatched = tuple(
        column for column, value in present
        if reference.get(column, NO_VALUE) != value
    )
    if mismatched:
        return Verdict.mismatch(mismatched)
    return Verdict.verified(REASON_VERIFIED)


def match_batch(
    rows: Sequence[UploadedRow],
    variant: SchemaVariant,
    indices: Mapping[SchemaVariant, ReferenceIndex],
    comparable_columns: Sequence[str] | None = None,
    *,
    workers: int = 1,
) -> MatchResult:
    """Match every row of one upload and summarize.

    With ``workers > 1`` rows are matched on a thread pool; results keep the
    input order and the summary is computed only after every row finished.
    """
    def _one(row: UploadedRow) -> RecordResult:
        return RecordResult(row=row, verdict=match_row(row, variant, indices, comparable_columns))

    if workers > 1 and len(rows) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_one, rows))
    else:
        results = [_one(r) for r in rows]

    summary = BatchSummary.from_results(results)
    logger.debug(
        "matched variant=%s total=%d verified=%d mismatch=%d not_found=%d",
        variant.value,
        summary.total,
        summary.verified,
        summary.mismatch,
        summary.not_found,
    )
    return MatchResult(results=results, summary=summary)
