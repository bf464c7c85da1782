from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_ARCHIVE_COMMAND,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_FILE_SIZE_MB,
    AnalyticsConfig,
    EngineConfig,
    MatchingConfig,
    ReferenceConfig,
    UploadConfig,
)
from ..models.schema_variant import SchemaVariant

"""Config loader.

Responsibilities:
- Load YAML config (default config/verify.yml)
- Validate against config_schema.json (unknown keys rejected)
- Apply defaults for every omitted section
- Apply environment overrides (environment wins over the file)
"""

DEFAULT_CONFIG_PATH = Path("config/verify.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"

ENV_ARCHIVE = "DEMOVERIFY_REFERENCE_ARCHIVE"
ENV_SEARCH_DIRS = "DEMOVERIFY_SEARCH_DIRS"


class ConfigError(Exception):
    pass


def variant_path_env(variant: SchemaVariant) -> str:
    return f"DEMOVERIFY_{variant.value.upper()}_PATH"


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or if
            the config data fails validation (unknown keys, wrong types, ...).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _variant_map(raw: Mapping[str, str] | None) -> dict[SchemaVariant, str]:
    if not raw:
        return {}
    return {SchemaVariant(name): value for name, value in raw.items()}


def build_config(data: dict[str, Any]) -> EngineConfig:
    """Build an EngineConfig from already-validated config data."""
    ref_raw = data.get("reference") or {}
    upload_raw = data.get("upload") or {}
    matching_raw = data.get("matching") or {}
    analytics_raw = data.get("analytics") or {}

    reference = ReferenceConfig(
        paths=_variant_map(ref_raw.get("paths")),
        search_directories=tuple(ref_raw.get("search_directories", ())),
        archive=ref_raw.get("archive"),
        archive_entries=_variant_map(ref_raw.get("archive_entries")),
        archive_command=tuple(ref_raw.get("archive_command", DEFAULT_ARCHIVE_COMMAND)),
        chunk_size=ref_raw.get("chunk_size", DEFAULT_CHUNK_SIZE),
    )
    defaults = AnalyticsConfig()
    return EngineConfig(
        reference=reference,
        upload=UploadConfig(max_file_size_mb=upload_raw.get("max_file_size_mb", DEFAULT_MAX_FILE_SIZE_MB)),
        matching=MatchingConfig(workers=matching_raw.get("workers", 1)),
        analytics=AnalyticsConfig(
            anomaly_mismatch_rate=analytics_raw.get("anomaly_mismatch_rate", defaults.anomaly_mismatch_rate),
            anomaly_min_records=analytics_raw.get("anomaly_min_records", defaults.anomaly_min_records),
        ),
    )


def load_config(path: Path) -> EngineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config validation failed: top level must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)
    return build_config(data)


def apply_env_overrides(config: EngineConfig, environ: Mapping[str, str] | None = None) -> EngineConfig:
    """Return a copy of ``config`` with environment overrides applied.

    優先順位: 環境変数 (.env 読込済) > config/verify.yml
        - DEMOVERIFY_<VARIANT>_PATH    per-variant explicit path
        - DEMOVERIFY_REFERENCE_ARCHIVE shared archive path
        - DEMOVERIFY_SEARCH_DIRS       os.pathsep separated directory list
    """
    env = os.environ if environ is None else environ
    ref = config.reference

    paths = dict(ref.paths)
    for variant in SchemaVariant.known():
        value = env.get(variant_path_env(variant))
        if value:
            paths[variant] = value

    archive = env.get(ENV_ARCHIVE) or ref.archive
    search_dirs = ref.search_directories
    raw_dirs = env.get(ENV_SEARCH_DIRS)
    if raw_dirs:
        search_dirs = tuple(d for d in raw_dirs.split(os.pathsep) if d)

    reference = replace(ref, paths=paths, archive=archive, search_directories=search_dirs)
    return replace(config, reference=reference)
