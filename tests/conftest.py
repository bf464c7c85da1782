# Shared pytest fixtures
from __future__ import annotations

import logging
import sys
import tempfile
import zipfile
from pathlib import Path

import pytest

from demoverify.logging.init import APP_LOGGER_NAME, reset_logging

ENROLLMENT_REFERENCE_CSV = """date,state,district,pincode,age_0_5,age_5_17,age_18_greater
2023-05-01,Goa,North Goa,403001,10,4,2
01-05-2023,Goa,North Goa,403001,3,1,0
02-05-2023,Goa,South Goa,403601,5,2,1
02-05-2023,Kerala,Ernakulam,682001,7,,3
03-05-2023,Kerala,,682001,1,1,1
"""

DEMOGRAPHIC_REFERENCE_CSV = """Date,State,District,Pincode,demo_age_5_17,demo_age_17_
01-05-2023,Goa,North Goa,403001,6,11
"""

# archive_command 代替: python <script> <archive> <entry> で entry を stdout へ
EXTRACT_SCRIPT = """import sys, zipfile
with zipfile.ZipFile(sys.argv[1]) as zf:
    try:
        data = zf.read(sys.argv[2])
    except KeyError:
        sys.stderr.write("caution: filename not matched: " + sys.argv[2] + "\\n")
        sys.exit(11)
sys.stdout.buffer.write(data)
"""


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "reference").mkdir()
        (p / "uploads").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()
    # CLI テストが付けた stdout ハンドラを外し caplog で拾えるよう戻す
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in app_logger.handlers[:]:
        app_logger.removeHandler(handler)
    app_logger.propagate = True
    app_logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _no_env_overrides(monkeypatch):
    for name in (
        "DEMOVERIFY_ENROLLMENT_PATH",
        "DEMOVERIFY_DEMOGRAPHIC_PATH",
        "DEMOVERIFY_BIOMETRIC_PATH",
        "DEMOVERIFY_REFERENCE_ARCHIVE",
        "DEMOVERIFY_SEARCH_DIRS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def reference_dir(temp_workdir: Path) -> Path:
    ref = temp_workdir / "reference"
    (ref / "api_data_aadhar_enrolment_0_500000.csv").write_text(ENROLLMENT_REFERENCE_CSV, encoding="utf-8")
    (ref / "api_data_aadhar_demographic_0_500000.csv").write_text(DEMOGRAPHIC_REFERENCE_CSV, encoding="utf-8")
    return ref


@pytest.fixture()
def extract_command(tmp_path: Path) -> list[str]:
    script = tmp_path / "extract_entry.py"
    script.write_text(EXTRACT_SCRIPT, encoding="utf-8")
    return [sys.executable, str(script)]


@pytest.fixture()
def reference_archive(temp_workdir: Path) -> Path:
    archive = temp_workdir / "reference" / "aadhaar_datasets.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("api_data_aadhar_enrolment.csv", ENROLLMENT_REFERENCE_CSV)
    return archive


@pytest.fixture()
def sample_config_yaml() -> str:
    return """reference:
  search_directories:
    - ./reference
  chunk_size: 2
upload:
  max_file_size_mb: 1
matching:
  workers: 1
analytics:
  anomaly_mismatch_rate: 50
  anomaly_min_records: 2
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "verify.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def enrollment_upload(temp_workdir: Path) -> Path:
    upload = temp_workdir / "uploads" / "enrolment_upload.csv"
    upload.write_text(
        "Date,State,District,Pincode,Age 0 5,age_5_17,age_18_greater\n"
        "2023-05-01, goa ,North  Goa,403001,10,4,2\n"
        "2023-05-01,Goa,North Goa,403001,12,4,2\n"
        "2023-05-01,Goa,,403001,10,4,2\n"
        "09-09-2023,Goa,North Goa,403001,1,1,1\n",
        encoding="utf-8",
    )
    return upload
