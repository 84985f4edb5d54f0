"""
Efficiency calculators.

Efficiency Factor is power output per heartbeat, a proxy for aerobic fitness:

  EF = NP / avg_HR            preferred
  EF = avg_power / avg_HR     only when NP is unavailable

The two are not interchangeable (NP >= average power on variable rides), so
every result is tagged with the basis it used and trend code keeps them apart.
"""
from statistics import fmean
from typing import Optional

from cyclemetrics.analysis.power import at_one_second
from cyclemetrics.analysis.result import (
    BASIS_AVERAGE_POWER,
    BASIS_NORMALIZED_POWER,
    EfficiencyResult,
    MetricResult,
)
from cyclemetrics.analysis.series import SampleSeries


def efficiency_factor(
    np_result: MetricResult,
    avg_power: MetricResult,
    avg_hr: MetricResult,
) -> EfficiencyResult:
    if not avg_hr.available:
        return EfficiencyResult(reason="average heart rate unavailable")
    if avg_hr.value <= 0:
        return EfficiencyResult(reason="average heart rate is not positive")

    if np_result.available:
        numerator, basis = np_result.value, BASIS_NORMALIZED_POWER
    elif avg_power.available:
        numerator, basis = avg_power.value, BASIS_AVERAGE_POWER
    else:
        return EfficiencyResult(reason="no power figure available")

    checked = MetricResult.of(numerator / avg_hr.value, "efficiency factor")
    if not checked.available:
        return EfficiencyResult(reason=checked.reason)
    return EfficiencyResult(value=checked.value, basis=basis)


def average_cadence(cadence: SampleSeries) -> MetricResult:
    """Mean pedalling cadence; coasting (0 rpm) is excluded."""
    values = [v for v in at_one_second(cadence).present_values() if v > 0]
    if not values:
        return MetricResult.missing("no pedalling cadence samples")
    return MetricResult.of(fmean(values), "average cadence")


def power_per_cadence(
    avg_power: MetricResult,
    cadence: Optional[SampleSeries],
) -> MetricResult:
    """Average watts per rpm of average pedalling cadence."""
    if not avg_power.available:
        return MetricResult.missing("average power unavailable")
    if cadence is None or cadence.is_empty:
        return MetricResult.missing("cadence stream not present")
    rpm = average_cadence(cadence)
    if not rpm.available:
        return MetricResult.missing(rpm.reason)
    return MetricResult.of(avg_power.value / rpm.value, "power per cadence")
