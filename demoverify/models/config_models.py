from __future__ import annotations

from dataclasses import dataclass, field

from .schema_variant import SchemaVariant

"""Config dataclasses for the verification engine.

These are the typed view of config/verify.yml produced by
demoverify.config.loader. Every section is optional; defaults reproduce the
behaviour of an engine with no overrides, no search directories and no
archive (i.e. every variant unavailable).
"""

DEFAULT_ARCHIVE_COMMAND: tuple[str, ...] = ("unzip", "-p")
DEFAULT_CHUNK_SIZE = 50_000
DEFAULT_MAX_FILE_SIZE_MB = 30


@dataclass(frozen=True)
class ReferenceConfig:
    """Where reference datasets are looked up.

    Resolution order per variant: explicit path -> search directories ->
    shared archive entry.
    """
    paths: dict[SchemaVariant, str] = field(default_factory=dict)
    search_directories: tuple[str, ...] = ()
    archive: str | None = None
    archive_entries: dict[SchemaVariant, str] = field(default_factory=dict)
    archive_command: tuple[str, ...] = DEFAULT_ARCHIVE_COMMAND
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def archive_entry_for(self, variant: SchemaVariant) -> str | None:
        return self.archive_entries.get(variant) or variant.default_archive_entry


@dataclass(frozen=True)
class UploadConfig:
    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB

    @property
    def max_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)


@dataclass(frozen=True)
class MatchingConfig:
    workers: int = 1  # 1 = 逐次実行


@dataclass(frozen=True)
class AnalyticsConfig:
    anomaly_mismatch_rate: float = 50.0  # percent
    anomaly_min_records: int = 5


@dataclass(frozen=True)
class EngineConfig:
    """Root configuration object."""
    reference: ReferenceConfig = field(default_factory=ReferenceConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
