from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .schema_variant import SchemaVariant

"""Reference-side domain models.

SourceDescriptor describes where a variant's reference data lives (a flat
file, or an entry inside the shared archive). ReferenceIndex is the frozen
key -> comparable-columns map built from it. LoadStatus is what the engine
reports back to its caller after start-up loading.
"""

__all__ = [
    "SourceKind",
    "SourceDescriptor",
    "ReferenceIndex",
    "LoadStatus",
]


class SourceKind(Enum):
    """How a reference source is read.

    - FILE: plain CSV / spreadsheet on disk
    - ARCHIVE_ENTRY: entry streamed out of the shared archive by an external command
    """
    FILE = "file"
    ARCHIVE_ENTRY = "archive_entry"


@dataclass(frozen=True)
class SourceDescriptor:
    variant: SchemaVariant
    kind: SourceKind
    path: Path  # ファイル本体 or アーカイブ
    entry: str | None = None  # ARCHIVE_ENTRY のみ

    def describe(self) -> str:
        if self.kind is SourceKind.ARCHIVE_ENTRY:
            return f"{self.path}!{self.entry}"
        return str(self.path)


@dataclass(frozen=True)
class ReferenceIndex:
    """Immutable index of one variant's reference rows.

    ``records`` maps a composite key to a read-only mapping of comparable
    column -> comparable value. An index that could not be built is empty and
    has ``available=False``.
    """
    variant: SchemaVariant
    records: Mapping[str, Mapping[str, Any]] = field(default_factory=lambda: MappingProxyType({}))
    available: bool = False
    row_count: int = 0  # rows indexed (rows without a key are not counted)
    source: str | None = None

    @classmethod
    def build(
        cls,
        variant: SchemaVariant,
        records: dict[str, dict[str, Any]],
        *,
        row_count: int,
        source: str | None = None,
    ) -> ReferenceIndex:
        frozen = {key: MappingProxyType(dict(values)) for key, values in records.items()}
        return cls(
            variant=variant,
            records=MappingProxyType(frozen),
            available=True,
            row_count=row_count,
            source=source,
        )

    @classmethod
    def unavailable(cls, variant: SchemaVariant) -> ReferenceIndex:
        return cls(variant=variant)

    @property
    def usable(self) -> bool:
        return self.available and len(self.records) > 0

    def lookup(self, key: str) -> Mapping[str, Any] | None:
        return self.records.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.records

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class LoadStatus:
    """Per-variant outcome of start-up loading."""
    loaded: bool
    row_count: int
    source: str | None = None
    error: str | None = None
