"""
Period aggregations (ISO week, calendar month) and overall stats.

Records are bucketed by period, then folded in start_time order. Sums
(distance, moving time, TSS) are plain additions. Mean efficiency factor is a
running (sum, count) over the activities that actually have one, so a ride
without heart rate does not drag the mean toward zero.

NP-based and average-power-based efficiency factors are folded separately;
the two formulas are never averaged together.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from cyclemetrics.analysis.pipeline import ActivityMetrics
from cyclemetrics.analysis.result import BASIS_AVERAGE_POWER, BASIS_NORMALIZED_POWER


@dataclass(frozen=True)
class PeriodSummary:
    key: str                      # "2025-W03" or "2025-01"
    start: date                   # Monday of the ISO week / 1st of the month
    activity_count: int
    total_distance_meters: float
    total_moving_time_seconds: float
    total_tss: float
    tss_count: int                # activities that contributed TSS
    mean_efficiency_factor: Optional[float]
    efficiency_factor_count: int
    mean_efficiency_factor_avg_power: Optional[float] = None
    efficiency_factor_avg_power_count: int = 0


class WeeklySummary(PeriodSummary):
    """Summary of one ISO week."""


class MonthlySummary(PeriodSummary):
    """Summary of one calendar month."""


class _Accumulator:
    """Running totals for one bucket."""

    def __init__(self):
        self.activity_count = 0
        self.distance = 0.0
        self.moving_time = 0.0
        self.tss = 0.0
        self.tss_count = 0
        self.ef_sum = 0.0
        self.ef_count = 0
        self.ef_avg_power_sum = 0.0
        self.ef_avg_power_count = 0

    def add(self, m: ActivityMetrics) -> None:
        self.activity_count += 1
        self.distance += m.distance_meters or 0.0
        self.moving_time += m.moving_time_seconds or 0.0
        if m.tss is not None:
            self.tss += m.tss
            self.tss_count += 1
        if m.efficiency_factor is not None:
            if m.efficiency_basis == BASIS_NORMALIZED_POWER:
                self.ef_sum += m.efficiency_factor
                self.ef_count += 1
            elif m.efficiency_basis == BASIS_AVERAGE_POWER:
                self.ef_avg_power_sum += m.efficiency_factor
                self.ef_avg_power_count += 1

    def build(self, cls, key: str, start: date) -> PeriodSummary:
        return cls(
            key=key,
            start=start,
            activity_count=self.activity_count,
            total_distance_meters=self.distance,
            total_moving_time_seconds=self.moving_time,
            total_tss=self.tss,
            tss_count=self.tss_count,
            mean_efficiency_factor=(self.ef_sum / self.ef_count) if self.ef_count else None,
            efficiency_factor_count=self.ef_count,
            mean_efficiency_factor_avg_power=(
                self.ef_avg_power_sum / self.ef_avg_power_count
                if self.ef_avg_power_count else None
            ),
            efficiency_factor_avg_power_count=self.ef_avg_power_count,
        )


def iso_week_key(day: date) -> Tuple[str, date]:
    iso = day.isocalendar()
    monday = day - timedelta(days=day.weekday())
    return f"{iso[0]}-W{iso[1]:02d}", monday


def month_key(day: date) -> Tuple[str, date]:
    return f"{day.year}-{day.month:02d}", day.replace(day=1)


def _summarize(
    records: Iterable[ActivityMetrics],
    bucket_of: Callable[[date], Tuple[str, date]],
    cls,
) -> List[PeriodSummary]:
    buckets: Dict[str, List[ActivityMetrics]] = defaultdict(list)
    starts: Dict[str, date] = {}
    for m in records:
        key, start = bucket_of(m.start_time.date())
        buckets[key].append(m)
        starts[key] = start

    summaries = []
    for key in sorted(buckets, key=lambda k: starts[k]):
        acc = _Accumulator()
        # sorted() is stable, so same-instant activities keep their input order
        for m in sorted(buckets[key], key=lambda r: r.start_time):
            acc.add(m)
        summaries.append(acc.build(cls, key, starts[key]))
    return summaries


def summarize_weeks(records: Iterable[ActivityMetrics]) -> List[WeeklySummary]:
    """One WeeklySummary per ISO week that has activities, oldest first."""
    return _summarize(records, iso_week_key, WeeklySummary)


def summarize_months(records: Iterable[ActivityMetrics]) -> List[MonthlySummary]:
    """One MonthlySummary per calendar month that has activities, oldest first."""
    return _summarize(records, month_key, MonthlySummary)


def efficiency_trend(summaries: Iterable[PeriodSummary]) -> List[Tuple[str, float]]:
    """(period key, mean NP-based EF) for periods that have one, in order."""
    return [
        (s.key, s.mean_efficiency_factor)
        for s in summaries
        if s.mean_efficiency_factor is not None
    ]


# ─── Overall Stats ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OverallStats:
    """Dashboard totals across every activity."""
    total_activities: int
    total_distance_km: float
    total_hours: float
    avg_power: Optional[float]        # mean over activities with power only
    avg_heart_rate: Optional[float]   # mean over activities with HR only
    max_speed_kmh: Optional[float]


def _mean_of_present(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def overall_stats(records: Iterable[ActivityMetrics]) -> OverallStats:
    records = list(records)
    speeds = [m.max_speed_ms for m in records if m.max_speed_ms is not None]
    return OverallStats(
        total_activities=len(records),
        total_distance_km=sum(m.distance_meters for m in records) / 1000,
        total_hours=sum(m.moving_time_seconds for m in records) / 3600,
        avg_power=_mean_of_present(m.average_power for m in records),
        avg_heart_rate=_mean_of_present(m.average_heart_rate for m in records),
        max_speed_kmh=max(speeds) * 3.6 if speeds else None,
    )
