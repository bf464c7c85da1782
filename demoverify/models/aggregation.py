from __future__ import annotations

from dataclasses import dataclass, field

"""Aggregation result models.

All four rollups are plain value objects; they are recomputed from a verdict
set on demand and carry no hidden state. Field names follow the chart
payload consumed by the reporting layer (verified_rate is a percentage).
"""


@dataclass(frozen=True)
class StateCount:
    state: str
    verified: int
    mismatch: int
    not_found: int


@dataclass(frozen=True)
class DistrictStat:
    district: str
    total: int
    verified_rate: float  # percent


@dataclass(frozen=True)
class AgeBucketTotal:
    name: str
    value: int | float


@dataclass(frozen=True)
class TrendPoint:
    date: str
    count: int
    verified: int


@dataclass(frozen=True)
class AggregationResult:
    state_distribution: list[StateCount] = field(default_factory=list)
    district_analysis: list[DistrictStat] = field(default_factory=list)
    age_distribution: list[AgeBucketTotal] = field(default_factory=list)
    temporal_trends: list[TrendPoint] = field(default_factory=list)


@dataclass(frozen=True)
class DateRange:
    start: str
    end: str


@dataclass(frozen=True)
class Insights:
    """Headline findings for one batch."""
    top_states: list[str]
    dominant_age_group: str | None
    verification_rate: float
    date_range: DateRange | None
    anomalies: list[str]
