"""
Heart rate: average HR, peak HR and zone classification.

5-zone model based on % of max HR:

Zone 1: < 60%  recovery
Zone 2: 60-70%  aerobic base
Zone 3: 70-80%  tempo
Zone 4: 80-90%  threshold
Zone 5: > 90%  VO2max
"""
from statistics import fmean
from typing import Dict

from cyclemetrics.analysis.power import at_one_second
from cyclemetrics.analysis.result import MetricResult
from cyclemetrics.analysis.rolling import peak
from cyclemetrics.analysis.series import SampleSeries

_ZONE_BOUNDARIES = [0.60, 0.70, 0.80, 0.90]  # lower bounds for zones 2-5


def classify_hr_zone(heart_rate: float, max_hr: int) -> int:
    """Zone 1-5 for a heart rate reading; a boundary belongs to the higher zone."""
    pct = heart_rate / max_hr
    for zone, boundary in enumerate(_ZONE_BOUNDARIES, start=2):
        if pct < boundary:
            return zone - 1
    return 5


def average_heart_rate(heart_rate: SampleSeries) -> MetricResult:
    """Time-weighted mean HR. Zero readings are dropouts, not data."""
    values = [v for v in at_one_second(heart_rate).present_values() if v > 0]
    if not values:
        return MetricResult.missing("no heart rate samples")
    return MetricResult.of(fmean(values), "average heart rate")


def max_heart_rate(heart_rate: SampleSeries) -> MetricResult:
    if heart_rate.is_empty:
        return MetricResult.missing("no heart rate samples")
    return MetricResult.of(peak(at_one_second(heart_rate)), "max heart rate")


def hr_zone_distribution(heart_rate: SampleSeries, max_hr: int) -> Dict[int, float]:
    """Seconds spent in each HR zone (keys 1-5); absent and zero readings are skipped."""
    grid = at_one_second(heart_rate)
    seconds = {zone: 0.0 for zone in range(1, 6)}
    for hr in grid.values:
        if hr is None or hr <= 0:
            continue
        seconds[classify_hr_zone(hr, max_hr)] += grid.sampling_interval_seconds
    return seconds
