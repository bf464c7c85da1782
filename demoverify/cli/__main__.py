from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from demoverify.config.loader import DEFAULT_CONFIG_PATH, ConfigError, apply_env_overrides, load_config
from demoverify.logging.error_log import ErrorLogBuffer, ErrorRecord
from demoverify.logging.init import enable_debug, log_summary, setup_logging
from demoverify.matching.normalizer import classify_and_normalize
from demoverify.models.error_record import SOURCE_LEVEL_ROW
from demoverify.models.config_models import EngineConfig
from demoverify.models.schema_variant import SchemaVariant
from demoverify.services.engine import VerificationEngine
from demoverify.services.report import write_report
from demoverify.services.summary import render_summary_line
from demoverify.upload.reader import UploadReadError, read_upload

"""CLI entrypoint.

Flow:
- Load .env, config/verify.yml, environment overrides
- Load reference datasets (once, all variants concurrently)
- Verify the given upload, print the SUMMARY line, optionally write a JSON report
- Flush the structured error log

Exit codes:
- 0: upload verified against its reference dataset
- 1: fatal (config error, unreadable upload)
- 2: partial (schema unrecognized, or its reference data unavailable)
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2

INSPECT_SAMPLE_ROWS = 3


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、参照データのパス指定を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Verify an uploaded demographic file against reference datasets")
    p.add_argument("upload", type=Path, help="Uploaded .csv / .xlsx / .xls file")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML path")
    p.add_argument("--report", type=Path, default=None, help="Write a JSON report to this path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print detected schema & first rows then exit")
    return p.parse_args(argv)


def _inspect_data(path: Path, cfg: EngineConfig) -> int:
    try:
        table = read_upload(path, max_bytes=cfg.upload.max_bytes)
    except UploadReadError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    classification = classify_and_normalize(table.rows[:INSPECT_SAMPLE_ROWS], table.headers)
    print(f"FILE: {table.file_name} rows={len(table.rows)}")
    print(f"  VARIANT: {classification.variant.value} comparable={list(classification.comparable_columns)}")
    print(f"  HEADERS: {table.headers}")
    for row in classification.rows:
        # datetime 含む場合に備えて isoformat で表示
        safe = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in row.values.items()}
        print(f"    row={row.row_number} key={row.key} values={safe}")
    return EXIT_SUCCESS


def _flush_error_log(error_log: ErrorLogBuffer, logger: logging.Logger) -> None:
    try:
        path = error_log.flush()
    except OSError as e:
        logger.warning(f"error log flush failed: {e}")
        return
    if path is not None:
        logger.info(f"error log written: {path}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: 空リスト [] が与えられた場合に sys.argv[1:] が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    cfg = apply_env_overrides(cfg)

    if args.debug:
        enable_debug(logger)
        logger.debug("debug mode enabled")

    if args.inspect_data:
        return _inspect_data(args.upload, cfg)

    engine = VerificationEngine(cfg)
    statuses = engine.load_reference_data()
    available = sum(1 for s in statuses.values() if s.loaded)
    logger.info(f"reference datasets available={available}/{len(statuses)}")

    try:
        report = engine.verify_upload(args.upload)
    except UploadReadError as e:
        logger.error(f"upload: {e}")
        engine.error_log.append(
            ErrorRecord.create(
                source=args.upload.name,
                variant=SchemaVariant.UNKNOWN.value,
                row=SOURCE_LEVEL_ROW,
                error_type="UPLOAD_READ_ERROR",
                message=str(e),
            )
        )
        _flush_error_log(engine.error_log, logger)
        return EXIT_FATAL

    summary_line = render_summary_line(report.file_name, report.variant, report.summary)
    # log_summary が "SUMMARY " を付与するため除去
    log_summary(summary_line[len("SUMMARY "):])

    if args.report is not None:
        written = write_report(report, args.report)
        logger.info(f"report written: {written}")

    _flush_error_log(engine.error_log, logger)

    if report.variant is SchemaVariant.UNKNOWN:
        logger.warning("upload schema not recognized; no row could be verified")
        return EXIT_PARTIAL
    if not report.reference_available:
        logger.warning(f"reference data unavailable for variant={report.variant.value}")
        return EXIT_PARTIAL
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
