"""
JSON-ready rendering of output records.

None stays None (JSON null), so a missing metric is never written as 0.
Integer mapping keys (zones, best-effort durations) become strings because
JSON object keys must be.
"""
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional

from cyclemetrics.analysis.aggregation import OverallStats, PeriodSummary
from cyclemetrics.analysis.pipeline import ActivityMetrics


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)


def _keyed(mapping: Optional[Dict[int, Optional[float]]], digits: int = 1):
    if mapping is None:
        return None
    return {str(k): _round(v, digits) for k, v in sorted(mapping.items())}


def activity_metrics_to_dict(m: ActivityMetrics) -> Dict[str, Any]:
    return {
        "activity_id": m.activity_id,
        "start_time": m.start_time.isoformat(),
        "distance_meters": m.distance_meters,
        "moving_time_seconds": m.moving_time_seconds,
        "normalized_power": _round(m.normalized_power, 1),
        "intensity_factor": _round(m.intensity_factor, 3),
        "tss": _round(m.tss, 1),
        "efficiency_factor": _round(m.efficiency_factor, 3),
        "efficiency_basis": m.efficiency_basis,
        "zone_distribution": _keyed(m.zone_distribution),
        "uncategorized_seconds": m.uncategorized_seconds,
        "hr_zone_distribution": _keyed(m.hr_zone_distribution),
        "fatigue_index": _round(m.fatigue_index, 3),
        "best_efforts": _keyed(m.best_efforts),
        "average_power": _round(m.average_power, 1),
        "max_power": _round(m.max_power, 1),
        "average_heart_rate": _round(m.average_heart_rate, 1),
        "max_heart_rate": _round(m.max_heart_rate, 1),
        "power_per_cadence": _round(m.power_per_cadence, 3),
        "max_speed_ms": _round(m.max_speed_ms, 2),
        "streams_present": list(m.streams_present),
        "diagnostics": dict(m.diagnostics),
    }


def period_summary_to_dict(s: PeriodSummary) -> Dict[str, Any]:
    out = asdict(s)
    out["start"] = s.start.isoformat()
    for name in ("mean_efficiency_factor", "mean_efficiency_factor_avg_power"):
        out[name] = _round(out[name], 3)
    return out


# WeeklySummary and MonthlySummary share one shape
weekly_summary_to_dict = period_summary_to_dict


def overall_stats_to_dict(stats: OverallStats) -> Dict[str, Any]:
    return asdict(stats)


def export_activity_metrics(records: Iterable[ActivityMetrics]) -> List[Dict[str, Any]]:
    return [activity_metrics_to_dict(m) for m in records]
