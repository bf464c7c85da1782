from __future__ import annotations

from enum import Enum

"""SchemaVariant enum for the verification engine.

Each known variant is one of the recognized upload/reference shapes published
as Aadhaar aggregate datasets. A variant carries its own ordered list of
comparable columns, the file name prefix used to find its reference dataset
on disk, and the age bucket each comparable column rolls up into.

UNKNOWN is the classification for uploads that match no marker column; it
has no columns and is never matched.
"""

__all__ = [
    "SchemaVariant",
    "AGE_BUCKETS",
]

# Age rollup buckets (display order)
AGE_BUCKETS: tuple[str, ...] = ("0-5 Years", "5-17 Years", "18+ Years")

_COMPARABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "enrollment": ("age_0_5", "age_5_17", "age_18_greater"),
    "demographic": ("demo_age_5_17", "demo_age_17_"),
    "biometric": ("bio_age_5_17", "bio_age_17_"),
    "unknown": (),
}

# 公開データセットのファイル名 (enrolment の綴りは提供元に合わせる)
_FILE_PREFIXES: dict[str, str] = {
    "enrollment": "api_data_aadhar_enrolment",
    "demographic": "api_data_aadhar_demographic",
    "biometric": "api_data_aadhar_biometric",
}

_AGE_BUCKET_BY_COLUMN: dict[str, str] = {
    "age_0_5": "0-5 Years",
    "age_5_17": "5-17 Years",
    "demo_age_5_17": "5-17 Years",
    "bio_age_5_17": "5-17 Years",
    "age_18_greater": "18+ Years",
    "demo_age_17_": "18+ Years",
    "bio_age_17_": "18+ Years",
}


class SchemaVariant(Enum):
    """Closed set of recognized file shapes.

    Declaration order of the known members is the detection check order:
    biometric and demographic files may also carry generic ``age_*`` columns,
    so their specific markers are tested before enrollment's.
    """
    BIOMETRIC = "biometric"
    DEMOGRAPHIC = "demographic"
    ENROLLMENT = "enrollment"
    UNKNOWN = "unknown"

    @classmethod
    def known(cls) -> tuple[SchemaVariant, ...]:
        """Known variants in detection order (UNKNOWN excluded)."""
        return tuple(v for v in cls if v is not cls.UNKNOWN)

    @property
    def comparable_columns(self) -> tuple[str, ...]:
        """Columns compared against the reference record (empty for UNKNOWN)."""
        return _COMPARABLE_COLUMNS[self.value]

    @property
    def marker_columns(self) -> tuple[str, ...]:
        # Presence of any comparable column classifies the file
        return self.comparable_columns

    @property
    def file_prefix(self) -> str | None:
        """Reference file name prefix, e.g. ``api_data_aadhar_enrolment``; None for UNKNOWN."""
        return _FILE_PREFIXES.get(self.value)

    @property
    def default_archive_entry(self) -> str | None:
        prefix = self.file_prefix
        return f"{prefix}.csv" if prefix else None

    @staticmethod
    def age_bucket(column: str) -> str | None:
        """Age bucket label (``"0-5 Years"`` ...) a comparable column sums into."""
        return _AGE_BUCKET_BY_COLUMN.get(column)
