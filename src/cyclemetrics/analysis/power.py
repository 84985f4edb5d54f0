"""
Power calculators: Normalized Power, Intensity Factor, Training Stress Score,
power-zone distribution, fatigue index and best efforts.

Every calculator works on the power stream resampled to a 1-second grid
(linear interpolation that leaves recording pauses absent, see
SampleSeries.resample_to_fixed_interval), so a
window of N seconds is always N samples and the same grid feeds NP, best
efforts, zones and fatigue index.

NP (Coggan):
  1. 30-second rolling mean of power
  2. raise each complete window mean to the 4th power
  3. average those, take the 4th root

  NP = mean(rolling_mean_30s(power) ** 4) ** 0.25

All functions are pure and return MetricResult; missing data is an absent
result, never an exception. Only a non-positive FTP or best-effort duration
raises.
"""
from dataclasses import dataclass, field
from statistics import fmean
from typing import Dict, Iterable, Optional, Sequence, Tuple

from cyclemetrics.analysis.result import MetricResult
from cyclemetrics.analysis.rider import ConfigurationError, RiderConfig
from cyclemetrics.analysis.rolling import rolling_mean
from cyclemetrics.analysis.series import SampleSeries

NP_WINDOW_SECONDS = 30
FATIGUE_SEGMENT_FRACTION = 0.20
DEFAULT_BEST_EFFORT_DURATIONS = (5, 60, 300, 1200, 3600)


def at_one_second(series: SampleSeries) -> SampleSeries:
    """The series on a 1-second grid (returned unchanged if it already is)."""
    return series.resample_to_fixed_interval(1)


def recorded_seconds(series: SampleSeries) -> int:
    """Seconds that carry a reading; pauses and dropouts do not count."""
    return series.valid_count * series.sampling_interval_seconds


def _require_ftp(ftp_watts: float) -> None:
    if ftp_watts is None or ftp_watts <= 0:
        raise ConfigurationError(f"FTP must be positive, got {ftp_watts!r}")


def check_best_effort_durations(durations: Iterable[int]) -> Tuple[int, ...]:
    """Sorted, de-duplicated durations; each must be a positive whole second."""
    cleaned = set()
    for d in durations:
        if isinstance(d, bool) or not isinstance(d, int) or d <= 0:
            raise ConfigurationError(
                f"best-effort durations must be positive whole seconds, got {d!r}"
            )
        cleaned.add(d)
    return tuple(sorted(cleaned))


# ─── Average / Normalized Power ───────────────────────────────────────────────

def average_power(power: SampleSeries) -> MetricResult:
    """Time-weighted mean power over present seconds (zeros count)."""
    values = at_one_second(power).present_values()
    if not values:
        return MetricResult.missing("no power samples")
    return MetricResult.of(fmean(values), "average power")


def normalized_power(power: SampleSeries) -> MetricResult:
    """
    Normalized Power in watts.

    Absent when fewer than 30 valid seconds exist or no 30-second window is
    free of gaps (a gap voids its window rather than shortening it).
    """
    grid = at_one_second(power)
    if grid.valid_count < NP_WINDOW_SECONDS:
        return MetricResult.missing(
            f"{grid.valid_count}s of power; need at least {NP_WINDOW_SECONDS}s"
        )

    windows = [m for m in rolling_mean(grid, NP_WINDOW_SECONDS) if m is not None]
    if not windows:
        return MetricResult.missing("no gap-free 30s power window")

    quartic_mean = fmean(m ** 4 for m in windows)
    return MetricResult.of(quartic_mean ** 0.25, "normalized power")


def intensity_factor(np_result: MetricResult, ftp_watts: float) -> MetricResult:
    """IF = NP / FTP."""
    _require_ftp(ftp_watts)
    if not np_result.available:
        return MetricResult.missing("normalized power unavailable")
    return MetricResult.of(np_result.value / ftp_watts, "intensity factor")


def training_stress_score(
    duration_seconds: float,
    np_result: MetricResult,
    if_result: MetricResult,
    ftp_watts: float,
) -> MetricResult:
    """TSS = (duration * NP * IF) / (FTP * 3600) * 100."""
    _require_ftp(ftp_watts)
    if not np_result.available:
        return MetricResult.missing("normalized power unavailable")
    if not if_result.available:
        return MetricResult.missing("intensity factor unavailable")
    if duration_seconds is None or duration_seconds <= 0:
        return MetricResult.missing(f"duration {duration_seconds!r}s is not positive")
    tss = (duration_seconds * np_result.value * if_result.value) / (ftp_watts * 3600) * 100
    return MetricResult.of(tss, "training stress score")


# ─── Zone Distribution ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ZoneDistribution:
    """
    Seconds per zone (keys 1-5) plus seconds with no reading.

    sum(seconds.values()) + uncategorized_seconds == total_seconds
    """
    seconds: Dict[int, float] = field(default_factory=dict)
    uncategorized_seconds: float = 0.0
    total_seconds: float = 0.0


def classify_power_zone(watts: float, thresholds_watts: Sequence[float]) -> int:
    """
    Zone 1-5 for a power reading. thresholds_watts are the lower bounds of
    zones 2-5; a reading exactly on a boundary belongs to the higher zone.
    """
    for zone, boundary in enumerate(thresholds_watts, start=1):
        if watts < boundary:
            return zone
    return len(thresholds_watts) + 1


def power_zone_distribution(power: SampleSeries, rider: RiderConfig) -> ZoneDistribution:
    _require_ftp(rider.ftp_watts)
    grid = at_one_second(power)
    thresholds = rider.zone_thresholds_watts()
    seconds: Dict[int, float] = {zone: 0.0 for zone in range(1, len(thresholds) + 2)}
    uncategorized = 0.0
    step = float(grid.sampling_interval_seconds)

    for watts in grid.values:
        if watts is None:
            uncategorized += step
        else:
            seconds[classify_power_zone(watts, thresholds)] += step

    return ZoneDistribution(
        seconds=seconds,
        uncategorized_seconds=uncategorized,
        total_seconds=float(grid.duration_seconds),
    )


# ─── Fatigue Index ────────────────────────────────────────────────────────────

def _segment_mean(grid: SampleSeries, start: float, end: float) -> Optional[float]:
    values = [
        v for t, v in zip(grid.timestamps, grid.values)
        if start <= t < end and v is not None
    ]
    return fmean(values) if values else None


def fatigue_index(power: SampleSeries) -> MetricResult:
    """
    FI = (mean_first20 - mean_last20) / mean_first20

    The first and last 20% are measured in time, so irregular sampling does not
    skew the split. A flat trace gives exactly 0.
    """
    grid = at_one_second(power)
    duration = grid.duration_seconds
    if duration <= 0:
        return MetricResult.missing("power stream has zero duration")

    start = grid.start_offset
    end = start + duration
    segment = duration * FATIGUE_SEGMENT_FRACTION

    first = _segment_mean(grid, start, start + segment)
    last = _segment_mean(grid, end - segment, end)
    if first is None:
        return MetricResult.missing("no power in first 20% of activity")
    if last is None:
        return MetricResult.missing("no power in last 20% of activity")
    if first == 0:
        return MetricResult.missing("mean power in first 20% is zero")
    return MetricResult.of((first - last) / first, "fatigue index")


# ─── Best Efforts ─────────────────────────────────────────────────────────────

def best_effort(power: SampleSeries, duration_seconds: int) -> MetricResult:
    """Best average power over any gap-free window of duration_seconds."""
    grid = at_one_second(power)
    if grid.duration_seconds < duration_seconds:
        return MetricResult.missing(
            f"activity is {grid.duration_seconds}s, shorter than {duration_seconds}s"
        )
    windows = [m for m in rolling_mean(grid, duration_seconds) if m is not None]
    if not windows:
        return MetricResult.missing(f"no gap-free {duration_seconds}s window")
    return MetricResult.of(max(windows), f"{duration_seconds}s best effort")


def best_efforts(
    power: SampleSeries,
    durations: Iterable[int] = DEFAULT_BEST_EFFORT_DURATIONS,
) -> Dict[int, MetricResult]:
    grid = at_one_second(power)
    return {d: best_effort(grid, d) for d in check_best_effort_durations(durations)}
