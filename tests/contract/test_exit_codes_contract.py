from __future__ import annotations

import json
import re
from pathlib import Path

from demoverify.cli import main as cli_main

"""Exit code contract tests.

0: upload verified against its reference dataset
1: fatal (config error, unreadable upload)
2: partial (schema unrecognized, or reference unavailable for its variant)
"""

SUMMARY_RE = re.compile(
    r"^SUMMARY file=\S+ variant=\w+ rows=\d+ verified=\d+ mismatch=\d+ not_found=\d+ rate=[0-9.]+$",
    re.MULTILINE,
)


def test_exit_code_fatal_missing_config(temp_workdir: Path, enrollment_upload: Path, capsys):
    # config/verify.yml 無し → exit 1
    code = cli_main([str(enrollment_upload)])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config:" in out


def test_exit_code_fatal_invalid_config(write_config: Path, enrollment_upload: Path, capsys):
    write_config.write_text("matching:\n  workers: 0\n", encoding="utf-8")
    code = cli_main([str(enrollment_upload)])
    assert code == 1
    assert "ERROR config: config validation failed" in capsys.readouterr().out


def test_exit_code_success(write_config: Path, reference_dir: Path, enrollment_upload: Path, capsys):
    code = cli_main([str(enrollment_upload)])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO reference datasets available=2/3" in out
    assert SUMMARY_RE.search(out)
    assert (
        "SUMMARY file=enrolment_upload.csv variant=enrollment rows=4 verified=1 mismatch=1 not_found=2 rate=25"
        in out
    )


def test_exit_code_fatal_unreadable_upload(write_config: Path, reference_dir: Path, temp_workdir: Path, capsys):
    missing = temp_workdir / "uploads" / "missing.csv"
    code = cli_main([str(missing)])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR upload: upload not found" in out
    # エラーログへ UPLOAD_READ_ERROR を記録
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    entry = json.loads(logs[0].read_text(encoding="utf-8").strip())
    assert entry["error_type"] == "UPLOAD_READ_ERROR"
    assert entry["source"] == "missing.csv"
    assert entry["row"] == -1


def test_exit_code_partial_unknown_schema(write_config: Path, reference_dir: Path, temp_workdir: Path, capsys):
    upload = temp_workdir / "uploads" / "other.csv"
    upload.write_text("name,city\nA,Goa\n", encoding="utf-8")
    code = cli_main([str(upload)])
    out = capsys.readouterr().out
    assert code == 2
    assert "variant=unknown" in out
    assert "WARN upload schema not recognized" in out


def test_exit_code_partial_reference_unavailable(write_config: Path, temp_workdir: Path, enrollment_upload: Path, capsys):
    # reference/ が空 → enrollment の参照データ無し
    code = cli_main([str(enrollment_upload)])
    out = capsys.readouterr().out
    assert code == 2
    assert "INFO reference datasets available=0/3" in out
    assert "not_found=4" in out


def test_report_option_writes_json(write_config: Path, reference_dir: Path, enrollment_upload: Path, temp_workdir: Path, capsys):
    target = temp_workdir / "out" / "report.json"
    code = cli_main([str(enrollment_upload), "--report", str(target)])
    assert code == 0
    assert json.loads(target.read_text(encoding="utf-8"))["summary"]["verified"] == 1
    assert "INFO report written:" in capsys.readouterr().out


def test_clean_run_writes_no_error_log(write_config: Path, reference_dir: Path, enrollment_upload: Path, temp_workdir: Path):
    assert cli_main([str(enrollment_upload)]) == 0
    assert list((temp_workdir / "logs").glob("errors-*.log")) == []


def test_inspect_data(write_config: Path, enrollment_upload: Path, capsys):
    code = cli_main([str(enrollment_upload), "--inspect-data"])
    out = capsys.readouterr().out
    assert code == 0
    assert "FILE: enrolment_upload.csv rows=4" in out
    assert "VARIANT: enrollment" in out
    assert "key=2023-05-01|goa|north goa|403001" in out


def test_env_override_path(write_config: Path, temp_workdir: Path, enrollment_upload: Path, reference_dir: Path, monkeypatch, capsys):
    # 検索ディレクトリの対象を消し、環境変数の明示パスのみで解決
    src = reference_dir / "api_data_aadhar_enrolment_0_500000.csv"
    moved = temp_workdir / "elsewhere.csv"
    src.rename(moved)
    monkeypatch.setenv("DEMOVERIFY_ENROLLMENT_PATH", str(moved))
    code = cli_main([str(enrollment_upload)])
    assert code == 0
    assert "verified=1" in capsys.readouterr().out
