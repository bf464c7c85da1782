from __future__ import annotations

from collections.abc import Sequence

from ..matching.normalizer import DATE_FORMAT
from ..models.aggregation import AggregationResult, DateRange, Insights
from ..models.config_models import AnalyticsConfig
from ..models.verdict import BatchSummary, RecordResult, VerdictStatus
from .aggregation import UNKNOWN_LABEL, PlaceNames, aggregate, parse_trend_date

"""Headline insights for one verified batch.

Derived from the verdict set (and its aggregation): most-verified states,
the dominant age bucket, overall verification rate, the covered date range
and districts whose mismatch rate stands out.
"""

TOP_STATES = 3


def _top_states(results: Sequence[RecordResult]) -> list[str]:
    verified: dict[str, int] = {}
    names = PlaceNames()
    for r in results:
        name = names.name(r.row.state)
        count = verified.setdefault(name, 0)
        if r.status is VerdictStatus.VERIFIED:
            verified[name] = count + 1
    ranked = sorted(
        ((name, n) for name, n in verified.items() if n > 0 and name != UNKNOWN_LABEL),
        key=lambda item: item[1],
        reverse=True,
    )
    return [name for name, _ in ranked[:TOP_STATES]]


def _date_range(results: Sequence[RecordResult]) -> DateRange | None:
    parsed = [d for d in (parse_trend_date(r.row.date) for r in results if r.row.date) if d is not None]
    if not parsed:
        return None
    return DateRange(start=min(parsed).strftime(DATE_FORMAT), end=max(parsed).strftime(DATE_FORMAT))


def _anomalies(results: Sequence[RecordResult], config: AnalyticsConfig) -> list[str]:
    counts: dict[str, list[int]] = {}  # [total, mismatch]
    names = PlaceNames()
    for r in results:
        entry = counts.setdefault(names.name(r.row.district), [0, 0])
        entry[0] += 1
        if r.status is VerdictStatus.MISMATCH:
            entry[1] += 1
    messages = []
    for district, (total, mismatch) in counts.items():
        if district == UNKNOWN_LABEL or total < config.anomaly_min_records:
            continue
        rate = mismatch / total * 100
        if rate >= config.anomaly_mismatch_rate:
            messages.append(f"High mismatch rate detected in {district} district ({rate:.1f}%)")
    return messages


def build_insights(
    results: Sequence[RecordResult],
    config: AnalyticsConfig | None = None,
    aggregation: AggregationResult | None = None,
) -> Insights:
    config = config or AnalyticsConfig()
    aggregation = aggregation or aggregate(results)

    dominant = max(aggregation.age_distribution, key=lambda b: b.value, default=None)
    dominant_name = dominant.name if dominant is not None and dominant.value > 0 else None

    return Insights(
        top_states=_top_states(results),
        dominant_age_group=dominant_name,
        verification_rate=BatchSummary.from_results(list(results)).verification_rate,
        date_range=_date_range(results),
        anomalies=_anomalies(results, config),
    )
