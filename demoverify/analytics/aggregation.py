from __future__ import annotations

import math
import numbers
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from ..matching.normalizer import DATE_FORMAT, is_blank, normalize_place
from ..models.aggregation import (
    AggregationResult,
    AgeBucketTotal,
    DistrictStat,
    StateCount,
    TrendPoint,
)
from ..models.schema_variant import AGE_BUCKETS, SchemaVariant
from ..models.verdict import RecordResult, VerdictStatus

"""Aggregation engine: verdict set -> reporting rollups.

One pass over the batch produces four independent rollups:

- state distribution: verdict counts per state, first 10 states by first appearance
  (spellings differing only in case or spacing count as one place)
- district analysis: total + verified rate per district, top 10 by total
  (ties keep first-appearance order)
- age distribution: per-bucket sums of the raw age column values
- temporal trends: count + verified per date, chronological (DD-MM-YYYY), first 20

Everything is a pure function of the verdict set.
"""

__all__ = [
    "UNKNOWN_LABEL",
    "PlaceNames",
    "aggregate",
    "label",
    "parse_trend_date",
    "to_count",
]

UNKNOWN_LABEL = "Unknown"
STATE_LIMIT = 10
DISTRICT_LIMIT = 10
TREND_LIMIT = 20


def label(value: Any) -> str:
    if is_blank(value):
        return UNKNOWN_LABEL
    return str(value).strip() or UNKNOWN_LABEL


class PlaceNames:
    """Groups state or district spellings under one display name.

    Values that normalize alike (case, inner whitespace) share the label of
    the first spelling seen in the batch.
    """

    def __init__(self) -> None:
        self._display: dict[str, str] = {}

    def name(self, value: Any) -> str:
        key = normalize_place(value)
        if key is None:
            return UNKNOWN_LABEL
        return self._display.setdefault(key, label(value))


def to_count(value: Any) -> int | float:
    """Raw cell -> number for summing; absent or non-numeric counts as 0."""
    if is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, numbers.Real):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number) if number.is_integer() else number


def parse_trend_date(text: str) -> datetime | None:
    try:
        return datetime.strptime(text, DATE_FORMAT)
    except (TypeError, ValueError):
        return None


def _trend_sort_key(item: tuple[int, str]) -> tuple[Any, ...]:
    position, date_text = item
    parsed = parse_trend_date(date_text)
    if parsed is None:
        # 解釈不能な日付は末尾 (出現順)
        return (1, position)
    return (0, parsed, position)


def aggregate(results: Iterable[RecordResult]) -> AggregationResult:
    """Compute the four rollups for one upload batch."""
    states: dict[str, dict[VerdictStatus, int]] = {}
    districts: dict[str, list[int]] = {}  # [total, verified]
    ages: dict[str, int | float] = {bucket: 0 for bucket in AGE_BUCKETS}
    dates: dict[str, list[int]] = {}  # [count, verified]
    state_names = PlaceNames()
    district_names = PlaceNames()

    for result in results:
        row = result.row
        status = result.status
        verified = 1 if status is VerdictStatus.VERIFIED else 0

        state_counts = states.setdefault(state_names.name(row.state), {s: 0 for s in VerdictStatus})
        state_counts[status] += 1

        district = districts.setdefault(district_names.name(row.district), [0, 0])
        district[0] += 1
        district[1] += verified

        for column in row.variant.comparable_columns:
            bucket = SchemaVariant.age_bucket(column)
            if bucket is not None:
                ages[bucket] += to_count(row.get(column))

        trend = dates.setdefault(row.date or UNKNOWN_LABEL, [0, 0])
        trend[0] += 1
        trend[1] += verified

    state_distribution = [
        StateCount(
            state=name,
            verified=counts[VerdictStatus.VERIFIED],
            mismatch=counts[VerdictStatus.MISMATCH],
            not_found=counts[VerdictStatus.NOT_FOUND],
        )
        for name, counts in states.items()
    ][:STATE_LIMIT]

    # sorted() is stable: equal totals keep first-appearance order
    ranked = sorted(districts.items(), key=lambda item: item[1][0], reverse=True)
    district_analysis = [
        DistrictStat(
            district=name,
            total=total,
            verified_rate=(verified / total * 100) if total > 0 else 0.0,
        )
        for name, (total, verified) in ranked[:DISTRICT_LIMIT]
    ]

    age_distribution = [AgeBucketTotal(name=bucket, value=ages[bucket]) for bucket in AGE_BUCKETS]

    ordered_dates = sorted(enumerate(dates), key=_trend_sort_key)
    temporal_trends = [
        TrendPoint(date=date_text, count=dates[date_text][0], verified=dates[date_text][1])
        for _, date_text in ordered_dates[:TREND_LIMIT]
    ]

    return AggregationResult(
        state_distribution=state_distribution,
        district_analysis=district_analysis,
        age_distribution=age_distribution,
        temporal_trends=temporal_trends,
    )
