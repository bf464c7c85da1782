from __future__ import annotations

from ..models.schema_variant import SchemaVariant
from ..models.verdict import BatchSummary

"""Summary line rendering.

Format:
SUMMARY file={name} variant={variant} rows={total} verified={n}
mismatch={n} not_found={n} rate={percent}
"""


def _format_number(value: float) -> str:
    # Integers without ".0", small fractions without scientific notation
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(file_name: str, variant: SchemaVariant, summary: BatchSummary) -> str:
    """Render the SUMMARY line for one verified upload.

    Examples:
        >>> s = BatchSummary(total=4, verified=3, mismatch=1, not_found=0)
        >>> render_summary_line("enrolment.csv", SchemaVariant.ENROLLMENT, s)
        'SUMMARY file=enrolment.csv variant=enrollment rows=4 verified=3 mismatch=1 not_found=0 rate=75'
    """
    return (
        f"SUMMARY file={file_name} "
        f"variant={variant.value} "
        f"rows={summary.total} "
        f"verified={summary.verified} "
        f"mismatch={summary.mismatch} "
        f"not_found={summary.not_found} "
        f"rate={_format_number(summary.verification_rate)}"
    )
