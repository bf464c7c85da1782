from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from ..models.verdict import RecordResult
from .engine import UploadReport

"""JSON report writer for one verified upload.

The report is the hand-off to storage/presentation collaborators: batch
summary, the four rollups, insights and one record per uploaded row.
"""


def _record(result: RecordResult) -> dict[str, Any]:
    row = result.row
    verdict = result.verdict
    return {
        "row": row.row_number,
        "date": row.date,
        "state": row.state,
        "district": row.district,
        "pincode": row.pincode,
        "status": verdict.status.value,
        "details": verdict.reason,
        "mismatched_columns": list(verdict.mismatched_columns),
        "original_data": row.values,
    }


def report_to_dict(report: UploadReport) -> dict[str, Any]:
    summary = report.summary
    return {
        "file_name": report.file_name,
        "variant": report.variant.value,
        "comparable_columns": list(report.comparable_columns),
        "reference_available": report.reference_available,
        "summary": {
            "total": summary.total,
            "verified": summary.verified,
            "mismatch": summary.mismatch,
            "not_found": summary.not_found,
            "verification_rate": summary.verification_rate,
        },
        "aggregation": asdict(report.aggregation),
        "insights": asdict(report.insights),
        "records": [_record(r) for r in report.results],
    }


def write_report(report: UploadReport, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    # 元データに Timestamp 等が含まれるため default=str
    path.write_text(
        json.dumps(report_to_dict(report), ensure_ascii=False, indent=2, default=str),
        encoding="utf-8",
    )
    return path
