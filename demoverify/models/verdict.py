from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .uploaded_row import UploadedRow

"""Verdict models for the matching engine.

A Verdict is computed once per uploaded row and never changes afterwards.
RecordResult pairs the row with its verdict; it is what aggregation and the
persistence collaborators consume. BatchSummary is the per-upload count
rollup produced alongside the verdicts.
"""

__all__ = [
    "VerdictStatus",
    "Verdict",
    "RecordResult",
    "BatchSummary",
    "MatchResult",
]


class VerdictStatus(Enum):
    VERIFIED = "Verified"
    MISMATCH = "Mismatch"
    NOT_FOUND = "NotFound"


@dataclass(frozen=True)
class Verdict:
    status: VerdictStatus
    reason: str
    mismatched_columns: tuple[str, ...] = ()

    @classmethod
    def verified(cls, reason: str) -> Verdict:
        return cls(VerdictStatus.VERIFIED, reason)

    @classmethod
    def mismatch(cls, columns: tuple[str, ...]) -> Verdict:
        return cls(
            VerdictStatus.MISMATCH,
            f"mismatched columns: {', '.join(columns)}",
            columns,
        )

    @classmethod
    def not_found(cls, reason: str) -> Verdict:
        return cls(VerdictStatus.NOT_FOUND, reason)


@dataclass(frozen=True)
class RecordResult:
    """An uploaded row and its verdict."""
    row: UploadedRow
    verdict: Verdict

    @property
    def status(self) -> VerdictStatus:
        return self.verdict.status


@dataclass(frozen=True)
class BatchSummary:
    total: int
    verified: int
    mismatch: int
    not_found: int

    @classmethod
    def from_results(cls, results: list[RecordResult]) -> BatchSummary:
        counts = {status: 0 for status in VerdictStatus}
        for r in results:
            counts[r.status] += 1
        return cls(
            total=len(results),
            verified=counts[VerdictStatus.VERIFIED],
            mismatch=counts[VerdictStatus.MISMATCH],
            not_found=counts[VerdictStatus.NOT_FOUND],
        )

    @property
    def verification_rate(self) -> float:
        """Verified share of all rows, in percent (0 for an empty batch)."""
        if self.total == 0:
            return 0.0
        return self.verified / self.total * 100


@dataclass(frozen=True)
class MatchResult:
    results: list[RecordResult]
    summary: BatchSummary
