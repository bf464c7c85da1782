from __future__ import annotations

import logging
from pathlib import Path

from ..models.config_models import ReferenceConfig
from ..models.reference import SourceDescriptor, SourceKind
from ..models.schema_variant import SchemaVariant

"""Reference source resolution.

For each schema variant, pick at most one reference source in a fixed
priority order:

1. explicit per-variant path (used only if it exists and is non-empty)
2. first file in the search directories whose name starts with the
   variant's prefix (directories in configured order, names sorted)
3. the variant's entry inside the shared archive, if the archive exists

Nothing found is a normal outcome: the variant is simply unavailable.
Filesystem errors while probing a location count as nothing found there.
"""

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xls")


def _usable_file(path: Path) -> bool:
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


def _archive_present(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError as e:
        logger.warning("cannot inspect reference archive %s: %s", path, e)
        return False


def scan_reference_files(directory: Path, prefix: str) -> list[Path]:
    """List candidate reference files in ``directory`` (non-recursive, sorted).

    A missing or unreadable directory yields an empty list.
    """
    try:
        if not directory.is_dir():
            return []
        candidates = [
            p for p in directory.iterdir()
            if p.is_file()
            and p.name.lower().startswith(prefix.lower())
            and p.suffix.lower() in SUPPORTED_SUFFIXES
        ]
    except OSError as e:
        logger.warning("cannot list reference directory %s: %s", directory, e)
        return []
    return sorted(candidates, key=lambda p: p.name)


def resolve_source(variant: SchemaVariant, config: ReferenceConfig) -> SourceDescriptor | None:
    """Locate the reference source for ``variant``.

    Args:
        variant: Known schema variant (UNKNOWN never resolves)
        config: Reference lookup configuration

    Returns:
        SourceDescriptor, or None when no source applies
    """
    if variant is SchemaVariant.UNKNOWN:
        return None

    override = config.paths.get(variant)
    if override:
        path = Path(override)
        if _usable_file(path):
            return SourceDescriptor(variant=variant, kind=SourceKind.FILE, path=path)
        # 空ファイル/存在しないパスは無視してディレクトリ探索へ
        logger.warning("reference override for %s ignored (missing or empty): %s", variant.value, path)

    prefix = variant.file_prefix
    if prefix:
        for directory in config.search_directories:
            for candidate in scan_reference_files(Path(directory), prefix):
                if _usable_file(candidate):
                    return SourceDescriptor(variant=variant, kind=SourceKind.FILE, path=candidate)

    if config.archive:
        archive = Path(config.archive)
        entry = config.archive_entry_for(variant)
        if entry and _archive_present(archive):
            return SourceDescriptor(variant=variant, kind=SourceKind.ARCHIVE_ENTRY, path=archive, entry=entry)

    return None
