"""Tests for weekly/monthly summaries, efficiency trend and overall stats."""
import random
from datetime import date, datetime, timezone

import pytest

from cyclemetrics.analysis.aggregation import (
    MonthlySummary,
    WeeklySummary,
    efficiency_trend,
    iso_week_key,
    overall_stats,
    summarize_months,
    summarize_weeks,
)
from cyclemetrics.analysis.pipeline import ActivityInput, ActivityMetrics, compute_activity_metrics
from cyclemetrics.analysis.result import BASIS_AVERAGE_POWER, BASIS_NORMALIZED_POWER


def make_metrics(
    activity_id,
    day,
    distance=20000.0,
    moving_time=3600.0,
    tss=None,
    ef=None,
    basis=BASIS_NORMALIZED_POWER,
    avg_power=None,
    avg_hr=None,
    max_speed=None,
) -> ActivityMetrics:
    return ActivityMetrics(
        activity_id=activity_id,
        start_time=datetime(day.year, day.month, day.day, 8, 0, tzinfo=timezone.utc),
        distance_meters=distance,
        moving_time_seconds=moving_time,
        tss=tss,
        efficiency_factor=ef,
        efficiency_basis=basis if ef is not None else None,
        average_power=avg_power,
        average_heart_rate=avg_hr,
        max_speed_ms=max_speed,
    )


class TestWeekKeys:
    def test_mid_january(self):
        assert iso_week_key(date(2025, 1, 15)) == ("2025-W03", date(2025, 1, 13))

    def test_year_boundary_uses_iso_year(self):
        assert iso_week_key(date(2024, 12, 30)) == ("2025-W01", date(2024, 12, 30))


class TestWeeklySummary:
    def test_missing_heart_rate_does_not_add_phantom_zero(self, rider):
        power = [(t, 200) for t in range(1800)]
        with_hr = ActivityInput(
            activity_id="hr",
            start_time=datetime(2025, 1, 14, 7, tzinfo=timezone.utc),
            streams={"power": power, "heart_rate": [(t, 160) for t in range(1800)]},
        )
        without_hr = ActivityInput(
            activity_id="no-hr",
            start_time=datetime(2025, 1, 16, 7, tzinfo=timezone.utc),
            streams={"power": power},
        )
        records = [compute_activity_metrics(a, rider) for a in (with_hr, without_hr)]

        (week,) = summarize_weeks(records)
        assert isinstance(week, WeeklySummary)
        assert week.activity_count == 2
        assert week.efficiency_factor_count == 1
        assert week.mean_efficiency_factor == pytest.approx(records[0].efficiency_factor)

    def test_sums(self):
        records = [
            make_metrics("a", date(2025, 1, 13), distance=10000, moving_time=1800, tss=40.0),
            make_metrics("b", date(2025, 1, 15), distance=30000, moving_time=5400, tss=80.0),
            make_metrics("c", date(2025, 1, 19), distance=5000, moving_time=900),
        ]
        (week,) = summarize_weeks(records)
        assert week.key == "2025-W03"
        assert week.start == date(2025, 1, 13)
        assert week.total_distance_meters == 45000
        assert week.total_moving_time_seconds == 8100
        assert week.total_tss == pytest.approx(120.0)
        assert week.tss_count == 2

    def test_separate_weeks_in_order(self):
        records = [
            make_metrics("late", date(2025, 1, 22)),
            make_metrics("early", date(2025, 1, 8)),
        ]
        assert [w.key for w in summarize_weeks(records)] == ["2025-W02", "2025-W04"]

    def test_bases_are_not_mixed(self):
        records = [
            make_metrics("np", date(2025, 1, 13), ef=1.5, basis=BASIS_NORMALIZED_POWER),
            make_metrics("avg", date(2025, 1, 14), ef=1.1, basis=BASIS_AVERAGE_POWER),
        ]
        (week,) = summarize_weeks(records)
        assert week.mean_efficiency_factor == pytest.approx(1.5)
        assert week.mean_efficiency_factor_avg_power == pytest.approx(1.1)

    def test_mean_is_sum_over_count_not_average_of_averages(self):
        records = [
            make_metrics("a", date(2025, 1, 13), ef=1.0),
            make_metrics("b", date(2025, 1, 14), ef=2.0),
            make_metrics("c", date(2025, 1, 15), ef=3.0),
            make_metrics("d", date(2025, 1, 16)),
        ]
        (week,) = summarize_weeks(records)
        assert week.mean_efficiency_factor == pytest.approx(2.0)

    def test_input_order_does_not_change_result(self):
        records = [
            make_metrics(str(i), date(2025, 1, 6 + i), tss=float(i), ef=1.0 + i / 10)
            for i in range(14)
        ]
        shuffled = records[:]
        random.Random(7).shuffle(shuffled)
        assert summarize_weeks(records) == summarize_weeks(shuffled)

    def test_empty(self):
        assert summarize_weeks([]) == []


class TestMonthlySummary:
    def test_months(self):
        records = [
            make_metrics("a", date(2025, 1, 31), tss=50.0),
            make_metrics("b", date(2025, 2, 1), tss=60.0),
            make_metrics("c", date(2025, 2, 20), tss=70.0),
        ]
        months = summarize_months(records)
        assert [m.key for m in months] == ["2025-01", "2025-02"]
        assert all(isinstance(m, MonthlySummary) for m in months)
        assert months[1].start == date(2025, 2, 1)
        assert months[1].total_tss == pytest.approx(130.0)


class TestEfficiencyTrend:
    def test_skips_periods_without_ef(self):
        records = [
            make_metrics("a", date(2025, 1, 8), ef=1.4),
            make_metrics("b", date(2025, 1, 15)),
            make_metrics("c", date(2025, 1, 22), ef=1.6),
        ]
        assert efficiency_trend(summarize_weeks(records)) == [
            ("2025-W02", pytest.approx(1.4)),
            ("2025-W04", pytest.approx(1.6)),
        ]


class TestOverallStats:
    def test_totals(self):
        records = [
            make_metrics("a", date(2025, 1, 8), distance=40000, moving_time=5400,
                         avg_power=200.0, avg_hr=140.0, max_speed=15.0),
            make_metrics("b", date(2025, 1, 9), distance=20000, moving_time=1800,
                         avg_power=None, avg_hr=150.0, max_speed=12.0),
        ]
        stats = overall_stats(records)
        assert stats.total_activities == 2
        assert stats.total_distance_km == pytest.approx(60.0)
        assert stats.total_hours == pytest.approx(2.0)
        assert stats.avg_power == pytest.approx(200.0)
        assert stats.avg_heart_rate == pytest.approx(145.0)
        assert stats.max_speed_kmh == pytest.approx(54.0)

    def test_empty(self):
        stats = overall_stats([])
        assert stats.total_activities == 0
        assert stats.avg_power is None
        assert stats.max_speed_kmh is None
