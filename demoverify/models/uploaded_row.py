from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .schema_variant import SchemaVariant

"""UploadedRow model.

UploadedRow represents a single row of an uploaded file after header
normalization, together with the fields derived from it during
classification (normalized date, variant, composite key).
"""

__all__ = [
    "UploadedRow",
]


@dataclass(frozen=True)
class UploadedRow:
    """One uploaded row, header-normalized.

    ``row_number`` is 1-based over data rows (header excluded). ``key`` is
    ``None`` when any of date/state/district/pincode is missing.
    """
    row_number: int
    values: dict[str, Any]  # normalized header -> raw cell value
    variant: SchemaVariant = SchemaVariant.UNKNOWN
    date: str | None = None
    key: str | None = None

    def get(self, column: str, default: Any = None) -> Any:
        return self.values.get(column, default)

    @property
    def state(self) -> Any:
        return self.values.get("state")

    @property
    def district(self) -> Any:
        return self.values.get("district")

    @property
    def pincode(self) -> Any:
        return self.values.get("pincode")
