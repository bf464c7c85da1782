from __future__ import annotations

import os
from pathlib import Path

import pytest

from demoverify.config.loader import ConfigError, apply_env_overrides, load_config, variant_path_env
from demoverify.models.config_models import DEFAULT_ARCHIVE_COMMAND, DEFAULT_CHUNK_SIZE, EngineConfig
from demoverify.models.schema_variant import SchemaVariant


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "verify.yml"
    p.write_text(text, encoding="utf-8")
    return p


def test_load_config_full(tmp_path: Path):
    p = _write(
        tmp_path,
        """reference:
  paths:
    enrollment: /data/enrol.csv
  search_directories: [./reference, ./data]
  archive: ./datasets.zip
  archive_entries:
    biometric: bio/part0.csv
  archive_command: [bsdtar, -xOf]
  chunk_size: 1000
upload:
  max_file_size_mb: 2
matching:
  workers: 4
analytics:
  anomaly_mismatch_rate: 40
  anomaly_min_records: 10
""",
    )
    cfg = load_config(p)
    ref = cfg.reference
    assert ref.paths == {SchemaVariant.ENROLLMENT: "/data/enrol.csv"}
    assert ref.search_directories == ("./reference", "./data")
    assert ref.archive == "./datasets.zip"
    assert ref.archive_entry_for(SchemaVariant.BIOMETRIC) == "bio/part0.csv"
    assert ref.archive_entry_for(SchemaVariant.DEMOGRAPHIC) == "api_data_aadhar_demographic.csv"
    assert ref.archive_command == ("bsdtar", "-xOf")
    assert ref.chunk_size == 1000
    assert cfg.upload.max_bytes == 2 * 1024 * 1024
    assert cfg.matching.workers == 4
    assert cfg.analytics.anomaly_mismatch_rate == 40
    assert cfg.analytics.anomaly_min_records == 10


def test_empty_config_uses_defaults(tmp_path: Path):
    cfg = load_config(_write(tmp_path, ""))
    assert cfg == EngineConfig()
    assert cfg.reference.archive_command == DEFAULT_ARCHIVE_COMMAND
    assert cfg.reference.chunk_size == DEFAULT_CHUNK_SIZE
    assert cfg.upload.max_bytes == 30 * 1024 * 1024


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(tmp_path / "missing.yml")


def test_invalid_yaml(tmp_path: Path):
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(_write(tmp_path, "reference: [unclosed\n"))


def test_top_level_must_be_mapping(tmp_path: Path):
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(_write(tmp_path, "- a\n- b\n"))


@pytest.mark.parametrize(
    "text",
    [
        "unknown_section: {}\n",
        "reference:\n  paths:\n    unknown: /x.csv\n",
        "reference:\n  chunk_size: 0\n",
        "reference:\n  archive_command: []\n",
        "upload:\n  max_file_size_mb: 0\n",
        "matching:\n  workers: two\n",
        "analytics:\n  anomaly_mismatch_rate: 150\n",
    ],
)
def test_schema_violations(tmp_path: Path, text: str):
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(_write(tmp_path, text))


def test_env_overrides_win(tmp_path: Path):
    cfg = load_config(_write(tmp_path, "reference:\n  paths:\n    enrollment: a.csv\n  archive: x.zip\n"))
    env = {
        variant_path_env(SchemaVariant.ENROLLMENT): "b.csv",
        variant_path_env(SchemaVariant.BIOMETRIC): "bio.csv",
        "DEMOVERIFY_REFERENCE_ARCHIVE": "y.zip",
        "DEMOVERIFY_SEARCH_DIRS": os.pathsep.join(["d1", "", "d2"]),
    }
    out = apply_env_overrides(cfg, env)
    assert out.reference.paths == {SchemaVariant.ENROLLMENT: "b.csv", SchemaVariant.BIOMETRIC: "bio.csv"}
    assert out.reference.archive == "y.zip"
    assert out.reference.search_directories == ("d1", "d2")
    # 元の config は不変
    assert cfg.reference.paths == {SchemaVariant.ENROLLMENT: "a.csv"}
    assert cfg.reference.archive == "x.zip"


def test_env_overrides_absent_keep_config(tmp_path: Path):
    cfg = load_config(_write(tmp_path, "reference:\n  search_directories: [./ref]\n"))
    out = apply_env_overrides(cfg, {})
    assert out == cfg


def test_variant_path_env_names():
    assert variant_path_env(SchemaVariant.ENROLLMENT) == "DEMOVERIFY_ENROLLMENT_PATH"
    assert variant_path_env(SchemaVariant.DEMOGRAPHIC) == "DEMOVERIFY_DEMOGRAPHIC_PATH"
    assert variant_path_env(SchemaVariant.BIOMETRIC) == "DEMOVERIFY_BIOMETRIC_PATH"
